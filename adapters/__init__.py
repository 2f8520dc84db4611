"""
Adapters — thin wrappers around the ArcGIS portal and local storage.

- http: shared httpx client and ArcGIS error-body checks
- portal: sharing REST content calls (folders, copy, update)
- identity: OAuth 2.0 handshake, refresh, revoke, session blob
- storage: session-scoped and persistent key/value stores
- navigation: the current address and handshake artifacts in it

Adapters never import from tools/.
"""
