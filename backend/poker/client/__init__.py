from poker.client.gateways import LocalGateway, RemoteGateway
from poker.client.store import SessionState, SessionStore

__all__ = ['LocalGateway', 'RemoteGateway', 'SessionState', 'SessionStore']
