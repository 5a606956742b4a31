import os
import tempfile

from lanshare import logger
from lanshare.common.errors import DirectoryUnavailable, WriteFailure, NotFound, DeleteFailure

TEMP_DIR_NAME = '.lanshare-tmp'

class FileRegistry:
	"""
	Flat directory of uploaded files, created on first use.
	Names must already be reduced to basenames by the caller, the registry
	only joins them with the upload directory.
	In-flight uploads are written to a sibling temp directory, never
	to the upload directory itself.
	"""
	def __init__(self, upload_dir:str, temp_dir:str = None):
		self.upload_dir = os.path.abspath(upload_dir)
		self.temp_dir = temp_dir
		if self.temp_dir is None:
			self.temp_dir = os.path.join(os.path.dirname(self.upload_dir), TEMP_DIR_NAME)
		self.temp_dir = os.path.abspath(self.temp_dir)

	def get_path(self, name:str) -> str:
		return os.path.join(self.upload_dir, name)

	def __ensure_dir(self):
		os.makedirs(self.upload_dir, exist_ok=True)

	async def list(self):
		try:
			self.__ensure_dir()
			return os.listdir(self.upload_dir), None
		except OSError as e:
			logger.debug('[REGISTRY] Listing %s failed: %s' % (self.upload_dir, e))
			return None, DirectoryUnavailable('Cannot read upload directory', e)

	async def store(self, name:str, data):
		final_path = self.get_path(name)
		temp_path = None
		try:
			self.__ensure_dir()
			os.makedirs(self.temp_dir, exist_ok=True)
			fd, temp_path = tempfile.mkstemp(dir=self.temp_dir, suffix='.uploading')
			with os.fdopen(fd, 'wb') as f:
				f.write(data)
			os.chmod(temp_path, 0o644)
			os.replace(temp_path, final_path)
			logger.debug('[REGISTRY] Stored %s (%s bytes)' % (name, len(data)))
			return final_path, None
		except OSError as e:
			if temp_path is not None:
				try:
					os.unlink(temp_path)
				except OSError:
					pass
			return None, WriteFailure('Cannot write %s' % name, e)

	async def delete(self, name:str):
		try:
			os.unlink(self.get_path(name))
			logger.debug('[REGISTRY] Deleted %s' % name)
			return True, None
		except FileNotFoundError as e:
			return None, NotFound('File not found: %s' % name, e)
		except OSError as e:
			return None, DeleteFailure('Cannot delete %s' % name, e)
