"""
SmallBasket Tracker Services

- Location Service - Polling, motion-adaptive scheduling, local queue
- Sync Service - Backend uploads and connectivity / reachability reports
- System Service - Device status (battery, network)
- Tracker Service - Composition root and local control server
"""
