"""
Services module - chat core business logic.

Submodules are imported directly (``from app.services.chat_service import
ChatService``) so that repositories can depend on the database service
without pulling in the whole service graph.
"""
