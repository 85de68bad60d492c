"""tempinbox Server

Serves the inbox session over HTTP:
- Snapshot of session, countdown and messages
- Actions: create/delete inbox, refresh and delete messages
- Health and config endpoints
"""
