"""
Account repository — the authoritative credential store.

Every mutation is a single-document MongoDB update. Operations that must not
race (refresh rotation, password change, OTP attempt reservation and
consumption) put the value they expect into the filter and use
``find_one_and_update``, so a concurrent writer that got there first makes
the filter miss and the method returns ``None`` / ``False``.
"""

from __future__ import annotations

import functools
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import ConflictError, InternalError
from schemas.models.account import OTP_FIELDS, AccountDoc, OtpPurpose
from shared.datetime_utils import utc_now
from shared.logging import get_logger

log = get_logger(__name__)

ACCOUNTS_COLLECTION = "accounts"

AccountId = Union[str, ObjectId]
T = TypeVar("T")


def _store_errors(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Translate driver errors into AppErrors."""

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await fn(*args, **kwargs)
        except DuplicateKeyError as e:
            key = next(iter((e.details or {}).get("keyValue") or {}), None)
            raise ConflictError(
                f"This {key or 'account'} is already registered!", field=key
            ) from e
        except PyMongoError as e:
            log.error(
                "account_store_error",
                operation=fn.__name__,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise InternalError("Account store is unavailable") from e

    return wrapper


def _oid(account_id: AccountId) -> Optional[ObjectId]:
    if isinstance(account_id, ObjectId):
        return account_id
    if isinstance(account_id, str) and ObjectId.is_valid(account_id):
        return ObjectId(account_id)
    return None


class AccountRepository:
    def __init__(self, collection) -> None:
        self._col = collection

    @classmethod
    def from_db(cls, db) -> "AccountRepository":
        return cls(db[ACCOUNTS_COLLECTION])

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("username", ASCENDING)], unique=True)
        await self._col.create_index([("email", ASCENDING)], unique=True)

    # ── Reads ────────────────────────────────────────────────────────────────

    @_store_errors
    async def get_by_id(self, account_id: AccountId) -> Optional[AccountDoc]:
        oid = _oid(account_id)
        if oid is None:
            return None
        return AccountDoc.from_mongo(await self._col.find_one({"_id": oid}))

    @_store_errors
    async def get_by_email(self, email: str) -> Optional[AccountDoc]:
        return AccountDoc.from_mongo(await self._col.find_one({"email": email}))

    @_store_errors
    async def get_by_identifier(self, identifier: str) -> Optional[AccountDoc]:
        """Look an account up by username or (lower-cased) email."""
        identifier = identifier.strip()
        doc = await self._col.find_one(
            {"$or": [{"username": identifier}, {"email": identifier.lower()}]}
        )
        return AccountDoc.from_mongo(doc)

    @_store_errors
    async def username_exists(self, username: str) -> bool:
        return await self._col.find_one({"username": username}, {"_id": 1}) is not None

    @_store_errors
    async def email_exists(self, email: str) -> bool:
        return await self._col.find_one({"email": email}, {"_id": 1}) is not None

    # ── Writes ───────────────────────────────────────────────────────────────

    @_store_errors
    async def insert(self, account: AccountDoc) -> AccountDoc:
        now = utc_now()
        account = account.model_copy(update={"created_at": now, "updated_at": now})
        result = await self._col.insert_one(account.to_mongo(exclude_none=True))
        return account.model_copy(update={"id": result.inserted_id})

    @_store_errors
    async def set_refresh_token_hash(
        self, account_id: AccountId, token_hash: str, password_hash: str
    ) -> bool:
        """Store the refresh hash of a new session.

        Conditioned on *password_hash*, the hash the login was checked against,
        so a password change that lands first makes the write miss.
        """
        result = await self._col.find_one_and_update(
            {"_id": _oid(account_id), "password_hash": password_hash},
            {"$set": {"refresh_token_hash": token_hash, "updated_at": utc_now()}},
        )
        return result is not None

    @_store_errors
    async def rotate_refresh_token_hash(
        self, account_id: AccountId, expected_hash: str, new_hash: str
    ) -> bool:
        """Swap the stored refresh hash only if it is still *expected_hash*."""
        result = await self._col.find_one_and_update(
            {"_id": _oid(account_id), "refresh_token_hash": expected_hash},
            {"$set": {"refresh_token_hash": new_hash, "updated_at": utc_now()}},
        )
        return result is not None

    @_store_errors
    async def clear_refresh_token_hash(self, account_id: AccountId) -> bool:
        result = await self._col.find_one_and_update(
            {"_id": _oid(account_id)},
            {"$unset": {"refresh_token_hash": ""}, "$set": {"updated_at": utc_now()}},
        )
        return result is not None

    @_store_errors
    async def update_password(
        self,
        account_id: AccountId,
        expected_hash: str,
        new_hash: str,
        changed_at: datetime,
    ) -> Optional[AccountDoc]:
        """Replace the password hash if it is still *expected_hash*.

        Also stamps ``password_changed_at`` and removes the stored refresh
        token hash.
        """
        doc = await self._col.find_one_and_update(
            {"_id": _oid(account_id), "password_hash": expected_hash},
            {
                "$set": {
                    "password_hash": new_hash,
                    "password_changed_at": changed_at,
                    "updated_at": utc_now(),
                },
                "$unset": {"refresh_token_hash": ""},
            },
            return_document=ReturnDocument.AFTER,
        )
        return AccountDoc.from_mongo(doc)

    @_store_errors
    async def rehash_password(
        self, account_id: AccountId, expected_hash: str, new_hash: str
    ) -> bool:
        """Upgrade hash parameters without touching ``password_changed_at``."""
        result = await self._col.find_one_and_update(
            {"_id": _oid(account_id), "password_hash": expected_hash},
            {"$set": {"password_hash": new_hash}},
        )
        return result is not None

    @_store_errors
    async def update_full_name(
        self, account_id: AccountId, full_name: str
    ) -> Optional[AccountDoc]:
        doc = await self._col.find_one_and_update(
            {"_id": _oid(account_id)},
            {"$set": {"full_name": full_name, "updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        return AccountDoc.from_mongo(doc)

    @_store_errors
    async def mark_email_verified(self, account_id: AccountId) -> Optional[AccountDoc]:
        doc = await self._col.find_one_and_update(
            {"_id": _oid(account_id)},
            {"$set": {"email_verified": True, "updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        return AccountDoc.from_mongo(doc)

    # ── OTP challenge ────────────────────────────────────────────────────────

    @_store_errors
    async def start_challenge(
        self,
        account_id: AccountId,
        otp_hash: str,
        purpose: OtpPurpose,
        expires_at: datetime,
    ) -> Optional[AccountDoc]:
        """Overwrite any previous challenge with a fresh one (attempts reset)."""
        doc = await self._col.find_one_and_update(
            {"_id": _oid(account_id)},
            {
                "$set": {
                    "active_otp_hash": otp_hash,
                    "otp_purpose": purpose,
                    "otp_expiry": expires_at,
                    "otp_attempts": 0,
                    "updated_at": utc_now(),
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        return AccountDoc.from_mongo(doc)

    @_store_errors
    async def reserve_otp_attempt(
        self, account_id: AccountId, otp_hash: str, max_attempts: int
    ) -> Optional[AccountDoc]:
        """Atomically consume one attempt of the challenge identified by *otp_hash*.

        Returns the updated account, or None when the challenge is gone or
        every allowed attempt is already used.
        """
        doc = await self._col.find_one_and_update(
            {
                "_id": _oid(account_id),
                "active_otp_hash": otp_hash,
                "otp_attempts": {"$lt": max_attempts},
            },
            {"$inc": {"otp_attempts": 1}},
            return_document=ReturnDocument.AFTER,
        )
        return AccountDoc.from_mongo(doc)

    @_store_errors
    async def consume_challenge(
        self, account_id: AccountId, otp_hash: str
    ) -> Optional[AccountDoc]:
        """Remove every OTP field, provided the challenge is still *otp_hash*."""
        doc = await self._col.find_one_and_update(
            {"_id": _oid(account_id), "active_otp_hash": otp_hash},
            {
                "$unset": {field: "" for field in OTP_FIELDS},
                "$set": {"updated_at": utc_now()},
            },
            return_document=ReturnDocument.AFTER,
        )
        return AccountDoc.from_mongo(doc)
