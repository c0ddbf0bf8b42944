"""
Sync Service - Backend Communication

Responsibilities:
- Backend REST client with retry (backend_client.py)
- Upload of the pending location queue, one sync at a time (cloud_sync.py)
- Connectivity / reachability reporting every 5 minutes (connectivity.py)
"""
