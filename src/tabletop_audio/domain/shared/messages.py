"""Centralized message constants for error messages, validation, and log output."""

from __future__ import annotations

class ErrorMessages:
    """Error messages for exceptions and validation failures."""

    # Reference Validation Errors
    INVALID_ITEM_REF = "Item reference must look like 'file:<id>' or 'collection:<id>', got {value!r}"
    INVALID_ITEM_ID = "Item reference id must be positive"

    # Collection Rules
    INVALID_COLLECTION_TYPE = "Invalid collection type: {value!r}. Must be one of {valid}"
    INVALID_ENUM_VALUE = "Invalid {field}: {value!r}. Must be one of {valid}"
    PACK_REQUIRES_COLLECTIONS = "A pack may only contain collections, not files"
    FILE_TYPE_NOT_ALLOWED = "A {collection_type} collection cannot hold {audio_type} files"
    COLLECTION_TYPE_NOT_ALLOWED = "A {collection_type} collection cannot hold {member_type} collections"
    DUPLICATE_ITEM = "{ref} is already a member of collection {collection_id}"
    NESTING_TOO_DEEP = "Nesting {ref} would exceed the maximum depth of {max_depth}"
    MACRO_FIELDS_ONLY = "Only macro collections carry a duration and volume"
    NEGATIVE_INDEX = "Insert index cannot be negative"

    # Folder Rules
    ROOT_FOLDER_HAS_PARENT = "Root folders cannot have a parent"
    ROOT_FOLDER_IMMOVABLE = "Root folders cannot be moved"
    ROOT_FOLDER_UNDELETABLE = "Root folders cannot be deleted"
    PARENT_REQUIRED = "Only root folders may be parentless"
    FOLDER_TYPE_CONFLICT = "Folder {folder_id} is constrained to {expected} audio, found {actual}"

    # Time/Date Validation Errors
    TIMEZONE_REQUIRED_UTC_DATETIME = "UtcDateTime requires a timezone-aware datetime"

    # Settings Validation Errors
    INVALID_DATABASE_URL = "Database URL must start with sqlite://"
    INVALID_LOG_LEVEL = "Invalid log level: {level}. Must be one of {valid_levels}"


class LogTemplates:
    """Log message templates for structured logging.

    Use these with logger.info(), logger.error(), etc. and pass values as parameters
    for proper log formatting and structured logging support.
    """

    # Database Lifecycle
    DATABASE_INITIALIZED = "Database initialized at %s"
    DATABASE_CLOSED = "Database manager closed"
    DATABASE_STATS_FAILED = "Failed to get database stats: %s"

    # Library Operations
    ROOT_FOLDER_CREATED = "Created root folder %s"
    FOLDER_CREATED = "Created folder %s (%s) under %s"
    FOLDER_MOVED = "Moved folder %s under %s at position %s"
    FOLDERS_DELETED = "Deleted %d folders and %d files"
    FILE_REGISTERED = "Registered %s file %s in folder %s"
    FILES_DELETED = "Deleted %d files, dropped %d collection references"
    COLLECTION_CREATED = "Created %s collection %s (%s)"
    COLLECTION_DELETED = "Deleted collection %s, dropped %d references"
    ITEM_ADDED = "Added %s to collection %s at position %s"
    ITEM_REMOVED = "Removed %s from collection %s"
    ITEM_MOVED = "Moved %s in collection %s to position %s"
    POSITIONS_RENUMBERED = "Renumbered %d siblings of %s"

    # Concurrency
    LOCK_RETRY = "Lock %s busy, retry %d/%d"
    LOCK_CONFLICT = "Giving up on lock %s after %d attempts"

    # Broadcast Channel
    SUBSCRIBER_ATTACHED = "Subscriber %s attached to namespace %s"
    SUBSCRIBER_DETACHED = "Subscriber %s detached from namespace %s"
    EVENT_PUBLISHED = "Published %s #%d to %d subscribers on %s"
    EVENT_DROPPED = "Subscriber %s queue full, dropped oldest event"
    SUBSCRIBER_OVERFLOW = "Subscriber %s queue full, disconnecting"
    DELIVERY_FAILED = "Delivery of %s to subscriber %s failed"

    # Session State
    VOLUME_REJECTED = "Rejected volume %s for %s in session %s"
    SESSION_JOINED = "Participant %s joined session %s"
    SESSION_STATE_STARTED = "Session state registry started"
    SESSION_STATE_STOPPED = "Session state registry stopped"
    SYNC_ADAPTER_STARTED = "Sync adapter %s started for session %s"
    SYNC_ADAPTER_STOPPED = "Sync adapter %s stopped"
    REMOTE_EVENT_FAILED = "Failed to apply remote %s in session %s"
