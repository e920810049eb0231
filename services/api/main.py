from __future__ import annotations

import os

from contractor_bids.api import DEFAULT_PUBLIC_BASE_URL, create_app
from contractor_bids.entity_store import InMemoryEntityStore
from contractor_bids.file_storage import GCSFileStorage, InMemoryFileStorage
from contractor_bids.firestore_entity_store import FirestoreEntityStore
from contractor_bids.logging_config import setup_logging
from contractor_bids.notifications import PubSubResponseNotifier
from contractor_bids.pubsub_client import PubSubClient
from contractor_bids.text_generation import VertexAITextGenerator

# Environment configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")
PROJECT_ID = os.getenv("PROJECT_ID")
VERTEX_LOCATION = os.getenv("VERTEX_LOCATION", "asia-northeast1")
VERTEX_MODEL = os.getenv("VERTEX_MODEL", "gemini-1.5-pro")
PUBSUB_TOPIC_PROPOSAL_RESPONSES = os.getenv("PUBSUB_TOPIC_PROPOSAL_RESPONSES", "proposal-responses")
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", DEFAULT_PUBLIC_BASE_URL)
UPLOADS_BUCKET = os.getenv("UPLOADS_BUCKET", f"{PROJECT_ID}-uploads")

# Setup logging
setup_logging(environment=ENVIRONMENT, project_id=PROJECT_ID)

# Use Firestore in production, in-memory for dev
if ENVIRONMENT == "dev":
    store = InMemoryEntityStore()
    files = InMemoryFileStorage()
else:
    store = FirestoreEntityStore(project_id=PROJECT_ID)
    files = GCSFileStorage(project_id=PROJECT_ID, bucket_name=UPLOADS_BUCKET)

# Without a project the proposals fall back to the built-in template
generator = (
    VertexAITextGenerator(project_id=PROJECT_ID, location=VERTEX_LOCATION, model_name=VERTEX_MODEL)
    if PROJECT_ID
    else None
)

notifier = (
    PubSubResponseNotifier(PubSubClient(project_id=PROJECT_ID), topic_id=PUBSUB_TOPIC_PROPOSAL_RESPONSES)
    if PROJECT_ID
    else None
)

app = create_app(
    store, generator=generator, notifier=notifier, files=files, public_base_url=PUBLIC_BASE_URL
)
