"""Central id generation for every persisted entity"""

import uuid


def new_id() -> str:
    """Generate a unique string id (UUID4)"""
    return str(uuid.uuid4())
