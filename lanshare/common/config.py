import os

DEFAULT_LISTEN_IP = '0.0.0.0'
DEFAULT_LISTEN_PORT = 3000
DEFAULT_MAX_UPLOAD_SIZE = 2*1024*1024*1024
DEFAULT_PAGE = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'public', 'index.html')

class ShareConfig:
	def __init__(self, upload_dir:str = 'uploads', page_path:str = None, listen_ip:str = DEFAULT_LISTEN_IP, listen_port:int = DEFAULT_LISTEN_PORT, max_upload_size:int = DEFAULT_MAX_UPLOAD_SIZE):
		self.upload_dir = os.path.abspath(upload_dir)
		self.page_path = DEFAULT_PAGE
		if page_path is not None:
			self.page_path = os.path.abspath(page_path)
		self.listen_ip = listen_ip
		self.listen_port = listen_port
		self.max_upload_size = max_upload_size

		if self.listen_port < 0 or self.listen_port > 65535:
			raise ValueError('Port must be between 0 and 65535, got %s' % self.listen_port)
		if self.max_upload_size is not None and self.max_upload_size < 0:
			raise ValueError('max_upload_size must not be negative, got %s' % self.max_upload_size)

	@staticmethod
	def from_args(args):
		return ShareConfig(
			upload_dir = args.upload_dir,
			page_path = args.page,
			listen_ip = args.listen_ip,
			listen_port = args.listen_port,
			max_upload_size = args.max_upload_size,
		)

	def __str__(self):
		t = '==== ShareConfig ====\r\n'
		for k in self.__dict__:
			t += '%s: %s\r\n' % (k, self.__dict__[k])
		return t
