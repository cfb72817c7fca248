__version__ = "0.1"

from ._parser import Authority, DuplicateKeys, InvalidPort, MalformedAuthority, MissingScheme, ParseError, ParsedUri, parse
