"""Built-in protocol plugins (concrete detectors).

Why a package:
- Groups one module per protocol.
- Importing it registers every plugin in the default registry; each module
  implements `core.interfaces.plugin.ServicePlugin`.
"""

from adapters.plugins.dns import DNSPlugin
from adapters.plugins.echo import EchoPlugin
from adapters.plugins.ftp import FTPPlugin
from adapters.plugins.http import HTTPPlugin, HTTPSPlugin
from adapters.plugins.mysql import MySQLPlugin
from adapters.plugins.ntp import NTPPlugin
from adapters.plugins.rdp import RDPPlugin
from adapters.plugins.redis import RedisPlugin
from adapters.plugins.ssh import SSHPlugin

__all__ = [
	"DNSPlugin",
	"EchoPlugin",
	"FTPPlugin",
	"HTTPPlugin",
	"HTTPSPlugin",
	"MySQLPlugin",
	"NTPPlugin",
	"RDPPlugin",
	"RedisPlugin",
	"SSHPlugin",
]
