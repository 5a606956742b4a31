import socket
import ipaddress

import psutil

def iter_ipv4_addresses():
	"""
	Yields (interface name, address) for every IPv4 address on the host,
	in the order the OS reports the interfaces.
	"""
	for ifname, addresses in psutil.net_if_addrs().items():
		for addr in addresses:
			if addr.family != socket.AF_INET:
				continue
			yield ifname, addr.address

def get_local_ip(fallback:str = 'localhost') -> str:
	"""Returns the first non-loopback IPv4 address or the fallback string"""
	try:
		for _, address in iter_ipv4_addresses():
			if ipaddress.ip_address(address).is_loopback is False:
				return address
	except (OSError, ValueError):
		return fallback
	return fallback
