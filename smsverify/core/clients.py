from typing import Optional

from smsverify.core.errors import InvalidInput, NotFound, Unauthorized, require
from smsverify.observability.logging import log
from smsverify.store.models import ClientIdentity
from smsverify.store.records import RecordStore
from smsverify.utils.crypto import hash_password, random_opaque_token, verify_password


class ClientRegistry:
    """Client identities: anonymous, or with a username + bcrypt password."""

    def __init__(self, store: RecordStore):
        self.store = store

    def create_client(self, username: Optional[str] = None, password: Optional[str] = None) -> ClientIdentity:
        if bool(username) != bool(password):
            raise InvalidInput("Either both or none of username and password must be provided")

        client = ClientIdentity(
            id=random_opaque_token(),
            username=username or None,
            passwordHash=hash_password(password) if password else None,
        )
        # Conflict on the username index propagates to the caller
        with self.store.transaction() as tx:
            tx.save_client(client)

        log(event="client_created", clientId=client.id, withCredentials=bool(username))
        return client

    def get_client(self, client_id: str) -> ClientIdentity:
        require(clientId=client_id)
        with self.store.transaction() as tx:
            client = tx.find_client(client_id)
        if client is None:
            raise NotFound(f"Client {client_id} does not exist")
        return client

    def authenticate(self, username: str, password: str) -> ClientIdentity:
        require(username=username, password=password)
        with self.store.transaction() as tx:
            client = tx.find_client_by_username(username)

        if client is None or not verify_password(password, client.passwordHash or ""):
            log(event="client_authentication_failed")
            raise Unauthorized("Wrong username or password")

        log(event="client_authenticated", clientId=client.id)
        return client
