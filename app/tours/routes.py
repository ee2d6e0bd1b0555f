from fastapi import APIRouter

# Tour handlers register themselves on this router; none ship with the bootstrap.
router = APIRouter(tags=["tours"])
