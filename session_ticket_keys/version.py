"""Session Ticket Keys Meta information.
   Session Ticket Keys rotates TLS session ticket keys on volatile storage.
"""
__title__ = 'session_ticket_keys'
__description__ = (
   'Session Ticket Keys rotates TLS session ticket keys '
   'kept on volatile storage.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2013 Richard Fussenegger'
__author__ = 'Richard Fussenegger'
__author_email__ = 'richard@fussenegger.info'
__license__ = 'Unlicense'
__url__ = 'http://richard.fussenegger.info/'
