
class ShareError(Exception):
	"""Base class for every error the share server reports to a client"""
	def __init__(self, message, innerexception = None):
		self.message = message
		self.innerexception = innerexception
		super().__init__(self.message)

	def __str__(self):
		if self.innerexception is None:
			return self.message
		return '%s (%s)' % (self.message, self.innerexception)

class MissingBoundary(ShareError):
	def __init__(self, message = 'Missing boundary in Content-Type'):
		super().__init__(message)

class MalformedBody(ShareError):
	pass

class MissingFilename(ShareError):
	def __init__(self, message = 'No filename in multipart headers'):
		super().__init__(message)

class UploadTooLarge(ShareError):
	def __init__(self, size, max_size):
		self.size = size
		self.max_size = max_size
		super().__init__('Upload too large: %s bytes (max: %s)' % (size, max_size))

class DirectoryUnavailable(ShareError):
	pass

class WriteFailure(ShareError):
	pass

class NotFound(ShareError):
	pass

class DeleteFailure(ShareError):
	pass
