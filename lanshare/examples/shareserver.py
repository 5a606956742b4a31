
import asyncio
import logging

from lanshare import logger
from lanshare._version import __banner__
from lanshare.common.config import ShareConfig, DEFAULT_LISTEN_IP, DEFAULT_LISTEN_PORT, DEFAULT_MAX_UPLOAD_SIZE
from lanshare.common.netinfo import get_local_ip
from lanshare.server.sharehandler import create_share_server

def get_parser():
	import argparse
	parser = argparse.ArgumentParser(description='Local network file sharing server')
	parser.add_argument('--upload-dir', default = 'uploads', help='Directory uploaded files are stored in')
	parser.add_argument('--page', help='HTML page served on /. Defaults to the bundled page')
	parser.add_argument('--listen-ip', default = DEFAULT_LISTEN_IP, help='Listen IP')
	parser.add_argument('--listen-port', type = int, default = DEFAULT_LISTEN_PORT, help='Listen port')
	parser.add_argument('--max-upload-size', type = int, default = DEFAULT_MAX_UPLOAD_SIZE, help='Maximum upload body size in bytes')
	parser.add_argument('-v', '--verbose', action='count', default=0, help='Verbosity')
	parser.add_argument('-s', '--silent', action='store_true', help = 'dont print banner')
	return parser

async def amain(args):
	if args.silent is False:
		print(__banner__)

	if args.verbose >= 1:
		logger.setLevel(logging.DEBUG)

	config = ShareConfig.from_args(args)
	logger.debug(str(config))

	server = create_share_server(config)
	await server.start()
	logger.info('Serving %s' % config.upload_dir)
	logger.info('http://%s:%s' % (get_local_ip(), server.get_listen_port()))
	try:
		await server.serve()
	finally:
		await server.terminate()

def main():
	parser = get_parser()
	args = parser.parse_args()
	try:
		asyncio.run(amain(args))
	except KeyboardInterrupt:
		print('Server stopped')
	except (OSError, ValueError) as e:
		logger.error('Failed to start server: %s' % e)
		raise SystemExit(1)

if __name__ == '__main__':
	main()
