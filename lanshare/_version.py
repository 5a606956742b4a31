
__version__ = "0.1.0"
__banner__ = \
"""
# lanshare %s
# local network file sharing over HTTP
""" % __version__
