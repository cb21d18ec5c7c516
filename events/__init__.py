"""events/ -- Login event model and the AMQP publisher.

Layer rule: events/ imports only stdlib + third-party libraries.
It does NOT import from api/, auth/, or core/.
"""
