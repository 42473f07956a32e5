# webbridge/core/__init__.py
"""
Core bridge modules.
Contains the control plane of the bridge:
- addressing: capability tokens and streaming URLs
- authz: authorization state machine (register / authorize / deauthorize)
- user_store: persistence adapter over the User model
- pubsub: per-chat WebSocket fan-out registry
- notify: detached, time-bounded outbound notifications
- db: Database configuration and connection management
- errors: error taxonomy
- chat_client: outbound chat interface implemented by platform adapters
"""
