import asyncio

import h11

from lanshare.common.config import ShareConfig
from lanshare.server.sharehandler import create_share_server

BOUNDARY = '----lanshareTestBoundary7MA4YWxk'


def multipart_body(filename:bytes, content:bytes, boundary:str = BOUNDARY):
    b = boundary.encode('ascii')
    return b'--' + b + b'\r\n' + \
        b'Content-Disposition: form-data; name="file"; filename="' + filename + b'"\r\n' + \
        b'Content-Type: application/octet-stream\r\n' + \
        b'\r\n' + content + b'\r\n' + \
        b'--' + b + b'--\r\n'

def multipart_headers(boundary:str = BOUNDARY):
    return [('Content-Type', 'multipart/form-data; boundary=%s' % boundary)]


async def http_request(port:int, method:str, target:str, headers = None, body:bytes = b'', send_body:bool = True):
    """
    Sends one request on a fresh connection and returns
    (status code, lowercased header dict, body).
    """
    reader, writer = await asyncio.open_connection('127.0.0.1', port)
    conn = h11.Connection(h11.CLIENT)
    req_headers = [('Host', '127.0.0.1:%s' % port), ('Connection', 'close')]
    if headers is not None:
        req_headers.extend(headers)
    if not any(k.lower() == 'content-length' for k, _ in req_headers):
        req_headers.append(('Content-Length', str(len(body))))

    data = conn.send(h11.Request(method=method, target=target, headers=req_headers))
    if send_body is True:
        if len(body) > 0:
            data += conn.send(h11.Data(data=body))
        data += conn.send(h11.EndOfMessage())
    writer.write(data)
    await writer.drain()

    response = None
    chunks = []
    try:
        while True:
            event = conn.next_event()
            if event is h11.NEED_DATA:
                conn.receive_data(await reader.read(65536))
                continue
            if type(event) is h11.Response:
                response = event
            elif type(event) is h11.Data:
                chunks.append(event.data)
            elif type(event) in (h11.EndOfMessage, h11.ConnectionClosed):
                break
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except ConnectionError:
            pass

    headers = {}
    for k, v in response.headers:
        headers[k.decode('ascii').lower()] = v.decode('latin-1')
    return response.status_code, headers, b''.join(chunks)


def run_with_server(tmp_path, scenario, **kwargs):
    """Starts a share server on an ephemeral port and runs scenario(port, config) against it"""
    kwargs.setdefault('upload_dir', str(tmp_path / 'uploads'))
    config = ShareConfig(listen_ip='127.0.0.1', listen_port=0, **kwargs)

    async def runner():
        async with create_share_server(config) as server:
            return await scenario(server.get_listen_port(), config)

    return asyncio.run(runner())
