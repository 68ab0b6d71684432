import os
import json
import time
from typing import List, Dict, Optional
from ..protocol.crypto.hash import to_hex
from ..protocol.crypto.keys import generate_private_key, parse_private_key, public_key_from_private
from ..settlement.signer import AttestationSigner

KEYSTORE_DIR = os.path.expanduser(os.environ.get("LOCKSTAKE_KEYSTORE", "~/.lockstake/keys"))

class KeyStore:
    """
    Verifier keys on disk, one JSON file per name (mode 0600).

    Record: {name, public_key, private_key, created_at}; keys are 0x-hex
    STARK-curve values.
    """

    def __init__(self, root_dir: str = KEYSTORE_DIR):
        self.root_dir = root_dir
        os.makedirs(self.root_dir, exist_ok=True)

    def _path(self, name: str) -> str:
        if not name or os.sep in name or name.startswith("."):
            raise ValueError(f"Invalid key name '{name}'")
        return os.path.join(self.root_dir, f"{name}.json")

    def create_key(self, name: str) -> Dict[str, str]:
        return self._store(name, generate_private_key())

    def import_key(self, name: str, private_key_hex: str) -> Dict[str, str]:
        try:
            priv = parse_private_key(private_key_hex)
        except (TypeError, ValueError):
            raise ValueError("Invalid private key")
        return self._store(name, priv)

    def get_key(self, name: str) -> Optional[Dict[str, str]]:
        path = self._path(name)
        if not os.path.exists(path):
            return None
        with open(path, "r") as f:
            return json.load(f)

    def signer(self, name: str) -> AttestationSigner:
        """Attestation signer for a stored key. KeyError if missing."""
        record = self.get_key(name)
        if record is None:
            raise KeyError(name)
        return AttestationSigner(record["private_key"])

    def list_keys(self) -> List[Dict[str, str]]:
        """Public view of every stored key, sorted by name."""
        names = sorted(f[:-5] for f in os.listdir(self.root_dir) if f.endswith(".json"))
        return [{"name": n, "public_key": self.get_key(n)["public_key"]} for n in names]

    def delete_key(self, name: str) -> bool:
        path = self._path(name)
        if not os.path.exists(path):
            return False
        os.remove(path)
        return True

    def _store(self, name: str, priv: int) -> Dict[str, str]:
        path = self._path(name)
        if os.path.exists(path):
            raise ValueError(f"Key '{name}' already exists")

        record = {
            "name": name,
            "public_key": to_hex(public_key_from_private(priv)),
            "private_key": to_hex(priv),  # TODO: encrypt at rest with a passphrase
            "created_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(record, f, indent=2)
        return record
