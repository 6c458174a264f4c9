import motor.motor_asyncio
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from talent_match.models.settings import MatchingSettings
from talent_match.utils.logging_config import get_logger

logger = get_logger(__name__)

SKILLS = "skills"
SKILL_ALIASES = "skill_aliases"
EMBEDDINGS = "embeddings"
CANDIDATES = "candidates"
JOBS = "jobs"
MATCH_CACHE = "match_cache"


def create_database(settings: MatchingSettings):
    """Create the motor client and return the configured database."""
    logger.info(f"Initializing MongoDB connection to database: {settings.db_name}")
    client = motor.motor_asyncio.AsyncIOMotorClient(settings.mongo_details)
    return client[settings.db_name]


async def _ensure_index(coll, keys, **kwargs):
    try:
        await coll.create_index(keys, **kwargs)
        logger.debug(f"Ensured index on {coll.name}: {keys}")
    except PyMongoError as e:
        if "already exists" in str(e).lower():
            logger.debug(f"Index on {coll.name} {keys} already exists")
        else:
            logger.warning(f"Could not create index on {coll.name} {keys}: {e}")


async def init_indexes(db):
    """Index initialization for collections."""
    logger.info("Starting database index initialization")

    # case-insensitive uniqueness is enforced on the lowered copies
    await _ensure_index(db[SKILLS], [("skill_id", ASCENDING)], unique=True)
    await _ensure_index(db[SKILLS], [("name_lower", ASCENDING)], unique=True)
    await _ensure_index(db[SKILL_ALIASES], [("alias_lower", ASCENDING)], unique=True)
    await _ensure_index(db[SKILL_ALIASES], [("skill_id", ASCENDING)])

    await _ensure_index(
        db[EMBEDDINGS],
        [("owner_type", ASCENDING), ("owner_id", ASCENDING), ("label", ASCENDING)],
        unique=True,
    )

    await _ensure_index(db[CANDIDATES], [("candidate_id", ASCENDING)], unique=True)
    await _ensure_index(db[JOBS], [("job_id", ASCENDING)], unique=True)

    await _ensure_index(db[MATCH_CACHE], [("key", ASCENDING)], unique=True)
    await _ensure_index(db[MATCH_CACHE], [("tags", ASCENDING)])
    await _ensure_index(db[MATCH_CACHE], [("expires_at", ASCENDING)], expireAfterSeconds=0)

    logger.info("Database index initialization completed")


def to_dict(doc):
    if not doc:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    return doc
