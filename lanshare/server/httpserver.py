import asyncio
import datetime
import email.utils
import urllib.parse
from itertools import count

import h11

from lanshare import logger
from lanshare._version import __version__
from lanshare.common.errors import UploadTooLarge
from lanshare.server.router import Router


class HTTPConnection:
    _next_id = count()

    def __init__(self, reader:asyncio.StreamReader, writer:asyncio.StreamWriter):
        self.MAX_RECV = 2**16
        self.reader = reader
        self.writer = writer
        self.conn = h11.Connection(h11.SERVER)
        # A unique id for this connection, to include in debugging output
        self.client_id = next(HTTPConnection._next_id)
        self.peer = writer.get_extra_info('peername')

    async def send(self, event):
        # ConnectionClosed is never sent, closing is done in shutdown_and_clean_up
        assert type(event) is not h11.ConnectionClosed
        data = self.conn.send(event)
        try:
            self.writer.write(data)
            await self.writer.drain()
        except BaseException:
            self.conn.send_failed()
            raise

    async def _read_from_peer(self):
        if self.conn.they_are_waiting_for_100_continue:
            logger.debug('[%s] Sending 100 Continue' % self.client_id)
            go_ahead = h11.InformationalResponse(
                status_code=100, headers=basic_headers()
            )
            await self.send(go_ahead)
        try:
            data = await self.reader.read(self.MAX_RECV)
        except (ConnectionError, OSError) as exc:
            logger.debug('[%s] Error reading from peer: %s' % (self.client_id, exc))
            # They've stopped listening. Not much we can do about it here.
            data = b""
        self.conn.receive_data(data)

    async def next_event(self):
        while True:
            event = self.conn.next_event()
            if event is h11.NEED_DATA:
                await self._read_from_peer()
                continue
            return event

    async def shutdown_and_clean_up(self):
        try:
            self.writer.close()
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            return


SERVER_IDENT = " ".join(
    ["lanshare/%s" % __version__, h11.PRODUCT_ID]
).encode("ascii")


def format_date_time(dt=None):
    """Generate a RFC 7231 / RFC 9110 IMF-fixdate string"""
    if dt is None:
        dt = datetime.datetime.now(datetime.timezone.utc)
    return email.utils.format_datetime(dt, usegmt=True)

def basic_headers():
    # HTTP requires these headers in all responses
    return [
        ("Date", format_date_time().encode("ascii")),
        ("Server", SERVER_IDENT),
    ]


class HTTPServerHandler:
    """
    Base request handler. One instance is created per client connection.
    Requests are dispatched through `router` to methods of the handler,
    each called as `await method(request, param)`.
    """
    router:Router = None
    default_headers = []

    def __init__(self):
        self._wrapper:HTTPConnection = None

    def basic_headers(self):
        return basic_headers() + list(self.default_headers)

    @staticmethod
    def get_header(request, name:bytes):
        name = name.lower()
        for hname, value in request.headers:
            if hname.lower() == name:
                return value.decode('latin-1')
        return None

    @staticmethod
    def get_path(request):
        target = request.target.decode('latin-1')
        return urllib.parse.urlsplit(target).path

    async def _process_request(self, wrapper:HTTPConnection, request:h11.Request):
        self._wrapper = wrapper
        method = request.method.decode("ascii")
        path = self.get_path(request)
        handler_name, param = self.router.resolve(method, path)
        logger.debug('[%s] %s %s -> %s' % (wrapper.client_id, method, path, handler_name))
        func = getattr(self, handler_name)
        try:
            await func(request, param)
        except (ConnectionError, h11.LocalProtocolError):
            raise
        except Exception as e:
            logger.exception('[%s] Handler %s failed' % (wrapper.client_id, handler_name))
            if self._wrapper.conn.our_state is h11.SEND_RESPONSE:
                await self.send_text(500, 'Internal Server Error: %s' % e)

    async def read_body(self, max_size:int = None):
        """
        Buffers the complete request body.
        Returns (body, None), or (None, err) when the client goes away
        or the body grows over max_size.
        """
        chunks = []
        total = 0
        while True:
            try:
                event = await self._wrapper.next_event()
            except h11.RemoteProtocolError as e:
                return None, ConnectionError('Client broke protocol mid-body: %s' % e)
            if type(event) is h11.Data:
                total += len(event.data)
                if max_size is not None and total > max_size:
                    return None, UploadTooLarge(total, max_size)
                chunks.append(event.data)
            elif type(event) is h11.EndOfMessage:
                return b''.join(chunks), None
            elif type(event) is h11.ConnectionClosed:
                return None, ConnectionError('Client disconnected after %s bytes' % total)
            else:
                return None, ConnectionError('Unexpected event %s' % type(event))

    async def send_response(self, status_code:int, body:bytes, content_type:str, close:bool = False):
        headers = self.basic_headers()
        headers.extend([
            ("Content-Type", content_type.encode("ascii")),
            ("Content-Length", str(len(body)).encode("ascii")),
        ])
        if close is True:
            headers.append(("Connection", b"close"))
        response = h11.Response(status_code=status_code, headers=headers)
        await self._wrapper.send(response)
        if len(body) > 0:
            await self._wrapper.send(h11.Data(data=body))
        await self._wrapper.send(h11.EndOfMessage())

    async def send_text(self, status_code:int, message:str, close:bool = False):
        await self.send_response(status_code, message.encode('utf-8'), "text/plain; charset=utf-8", close=close)

    async def send_file(self, file_path:str, content_type:str):
        try:
            with open(file_path, 'rb') as f:
                data = f.read()
        except OSError as e:
            logger.debug('[%s] Cannot read %s: %s' % (self._wrapper.client_id, file_path, e))
            await self.send_text(404, "Not Found")
            return
        await self.send_response(200, data, content_type)


class HTTPServer:
    def __init__(self, client_handler, listen_ip:str, listen_port:int):
        self.listen_ip = listen_ip
        self.listen_port = listen_port
        self.client_handler = client_handler

        self.server:asyncio.AbstractServer = None
        self.clients = set()
        self.started_evt = asyncio.Event()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.terminate()

    def get_listen_port(self):
        if self.server is None:
            return self.listen_port
        return self.server.sockets[0].getsockname()[1]

    async def start(self):
        self.server = await asyncio.start_server(self.__handle_connection, self.listen_ip, self.listen_port)
        self.started_evt.set()
        logger.debug('Server listening on %s:%s' % (self.listen_ip, self.get_listen_port()))
        return self.server

    async def serve(self):
        if self.server is None:
            await self.start()
        async with self.server:
            await self.server.serve_forever()

    async def terminate(self):
        if self.server is not None:
            self.server.close()
        tasks = list(self.clients)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.clients = set()
        if self.server is not None:
            await self.server.wait_closed()

    async def _maybe_send_error(self, wrapper:HTTPConnection, handler:HTTPServerHandler, status_code:int, message:str):
        # a response can only be started if none is in progress
        if wrapper.conn.our_state not in {h11.IDLE, h11.SEND_RESPONSE}:
            return
        try:
            handler._wrapper = wrapper
            await handler.send_text(status_code, message, close=True)
        except Exception as exc:
            logger.debug('[%s] Error while sending error response: %r' % (wrapper.client_id, exc))

    async def __handle_connection(self, reader, writer):
        task = asyncio.current_task()
        self.clients.add(task)
        wrapper = HTTPConnection(reader, writer)
        client_id = wrapper.client_id
        handler = self.client_handler()
        logger.debug('[%s] New client connected from %s' % (client_id, wrapper.peer))
        try:
            while True:
                states = wrapper.conn.states
                if states == {h11.CLIENT: h11.CLOSED, h11.SERVER: h11.CLOSED}:
                    break
                if h11.MUST_CLOSE in (states[h11.CLIENT], states[h11.SERVER]):
                    break
                if states == {h11.CLIENT: h11.DONE, h11.SERVER: h11.DONE}:
                    wrapper.conn.start_next_cycle()
                    continue
                if states != {h11.CLIENT: h11.IDLE, h11.SERVER: h11.IDLE}:
                    # response went out before the request body was consumed
                    if states != {h11.CLIENT: h11.SEND_BODY, h11.SERVER: h11.DONE}:
                        logger.debug('[%s] Connection state not idle: %s' % (client_id, states))
                        break

                try:
                    event = await wrapper.next_event()
                except h11.RemoteProtocolError as exc:
                    logger.debug('[%s] Protocol error: %s' % (client_id, exc))
                    await self._maybe_send_error(wrapper, handler, exc.error_status_hint, 'Bad Request')
                    break

                if type(event) is h11.Request:
                    try:
                        await handler._process_request(wrapper, event)
                    except Exception as exc:
                        logger.debug('[%s] Request processing aborted: %r' % (client_id, exc))
                        break
                    continue
                if type(event) is h11.ConnectionClosed:
                    break
                # leftover body of a request that was already answered
                if type(event) in (h11.Data, h11.EndOfMessage):
                    continue
                logger.debug('[%s] Unknown event type %s' % (client_id, type(event)))
        except Exception:
            logger.exception('[%s] Connection handler failed' % client_id)
        finally:
            await wrapper.shutdown_and_clean_up()
            self.clients.discard(task)
            logger.debug('[%s] Client disconnected' % client_id)
