"""
Single-part multipart/form-data parsing.

The whole request body is expected to be in memory. Only the first part of
the body is looked at: a form carrying more than one field or file yields
the first part's filename and whatever lies between that part's headers and
the next boundary marker.
"""
import re

from lanshare.common.errors import MissingBoundary, MalformedBody, MissingFilename

HEADER_SEPARATOR = b'\r\n\r\n'
BOUNDARY_RE = re.compile(r'boundary=([^;]+)', re.IGNORECASE)
FILENAME_RE = re.compile(r'filename="(.+?)"')

class ParsedUpload:
	def __init__(self, filename:str, data:memoryview):
		self.filename = filename
		self.data = data

	def __len__(self):
		return len(self.data)

	def __repr__(self):
		return 'ParsedUpload(%r, %s bytes)' % (self.filename, len(self.data))

def safe_basename(filename:str):
	"""
	Reduces a client supplied name to its last path component.
	Both / and \\ are separators. Returns None when nothing usable remains.
	"""
	if filename is None:
		return None
	name = filename.replace('\\', '/').rsplit('/', 1)[-1]
	if name in ['', '.', '..'] or '\x00' in name:
		return None
	return name

def get_boundary(content_type:str):
	if not content_type:
		return None, MissingBoundary()
	m = BOUNDARY_RE.search(content_type)
	if m is None:
		return None, MissingBoundary()
	boundary = m.group(1).strip().strip('"')
	if boundary == '':
		return None, MissingBoundary()
	return boundary, None

def parse_upload(body:bytes, boundary:str):
	"""
	Extracts (filename, content) of the first part in a multipart body.
	Returns (ParsedUpload, None) or (None, error).
	"""
	if isinstance(boundary, str):
		boundary = boundary.encode('utf-8')
	delimiter = b'--' + boundary

	header_end = body.find(HEADER_SEPARATOR)
	if header_end == -1:
		return None, MalformedBody('No header/body separator')

	headers_text = bytes(body[:header_end]).decode('utf-8', errors='replace')
	m = FILENAME_RE.search(headers_text)
	if m is None:
		return None, MissingFilename()

	filename = safe_basename(m.group(1))
	if filename is None:
		return None, MissingFilename('Unusable filename %r' % m.group(1))

	file_start = header_end + len(HEADER_SEPARATOR)
	file_end = body.find(delimiter, file_start)
	if file_end == -1:
		return None, MalformedBody('Closing boundary not found')

	# content is followed by CRLF before the delimiter
	if file_end - 2 < file_start or body[file_end-2:file_end] != b'\r\n':
		return None, MalformedBody('No CRLF before closing boundary')

	return ParsedUpload(filename, memoryview(body)[file_start:file_end-2]), None
