"""
File sharing handler: static page, JSON file listing, downloads,
single-file multipart uploads and deletion.
"""
import json
import urllib.parse

from lanshare import logger
from lanshare.common.config import ShareConfig
from lanshare.common.errors import MissingBoundary, MalformedBody, MissingFilename, \
    UploadTooLarge, WriteFailure, NotFound
from lanshare.protocol.multipart import get_boundary, parse_upload, safe_basename
from lanshare.storage.registry import FileRegistry
from lanshare.server.httpserver import HTTPServerHandler, HTTPServer
from lanshare.server.router import Router, Route


UPLOAD_ERROR_STATUS = {
    MissingBoundary: 400,
    MalformedBody: 400,
    MissingFilename: 400,
    UploadTooLarge: 413,
    WriteFailure: 500,
}

SHARE_ROUTES = Router([
    Route('GET', '/', 'serve_page'),
    Route('GET', '/api/files', 'list_files'),
    Route('GET', '/uploads/', 'download_file', prefix=True),
    Route('POST', '/upload', 'upload_file'),
    Route('DELETE', '/api/files/', 'delete_file', prefix=True),
], fallback='not_found')


def decode_name(raw:str):
    """URL-decodes a name taken from the request path and keeps its basename only"""
    return safe_basename(urllib.parse.unquote(raw))


class ShareHandler(HTTPServerHandler):
    router = SHARE_ROUTES
    default_headers = [("Access-Control-Allow-Origin", b"*")]

    def __init__(self, config:ShareConfig):
        super().__init__()
        self.config = config
        self.registry = FileRegistry(config.upload_dir)

    async def serve_page(self, request, _):
        await self.send_file(self.config.page_path, "text/html; charset=utf-8")

    async def list_files(self, request, _):
        names, err = await self.registry.list()
        if err is not None:
            logger.warning('[LIST] %s' % err)
            body = json.dumps({"error": err.message}).encode('utf-8')
            await self.send_response(404, body, "application/json")
            return
        await self.send_response(200, json.dumps(names).encode('utf-8'), "application/json")

    async def download_file(self, request, raw_name):
        name = decode_name(raw_name)
        if name is None:
            await self.send_text(404, "Not Found")
            return
        await self.send_file(self.registry.get_path(name), "application/octet-stream")

    async def upload_file(self, request, _):
        max_size = self.config.max_upload_size
        content_length = self.get_header(request, b'content-length')
        if max_size is not None and content_length is not None and int(content_length) > max_size:
            # refuse before reading anything, the rest of the body is never consumed
            await self.upload_error(UploadTooLarge(int(content_length), max_size), close=True)
            return

        logger.info('[UPLOAD] Receiving upload from %s' % (self._wrapper.peer,))
        body, err = await self.read_body(max_size)
        if err is not None:
            if isinstance(err, UploadTooLarge):
                await self.upload_error(err, close=True)
                return
            # client is gone, nothing gets written
            logger.info('[UPLOAD] Upload abandoned: %s' % err)
            raise err

        boundary, err = get_boundary(self.get_header(request, b'content-type'))
        if err is not None:
            await self.upload_error(err)
            return

        upload, err = parse_upload(body, boundary)
        if err is not None:
            await self.upload_error(err)
            return

        _, err = await self.registry.store(upload.filename, upload.data)
        if err is not None:
            logger.error('[UPLOAD] %s' % err)
            await self.upload_error(err)
            return

        logger.info('[UPLOAD] Saved %s (%s bytes)' % (upload.filename, len(upload)))
        await self.send_text(200, "Saved")

    async def upload_error(self, err, close:bool = False):
        logger.info('[UPLOAD] Rejected: %s' % err)
        status_code = UPLOAD_ERROR_STATUS.get(type(err), 400)
        await self.send_text(status_code, err.message, close=close)

    async def delete_file(self, request, raw_name):
        name = decode_name(raw_name)
        if name is None:
            await self.send_text(404, "File not found")
            return
        _, err = await self.registry.delete(name)
        if err is not None:
            logger.info('[DELETE] %s' % err)
            if isinstance(err, NotFound):
                await self.send_text(404, "File not found")
            else:
                await self.send_text(404, "Failed to delete file")
            return
        logger.info('[DELETE] Deleted %s' % name)
        await self.send_text(200, "File deleted")

    async def not_found(self, request, _):
        await self.send_text(404, "Nothing found")


def create_share_server(config:ShareConfig) -> HTTPServer:
    return HTTPServer(lambda: ShareHandler(config), config.listen_ip, config.listen_port)
