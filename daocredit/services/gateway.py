"""FHE relayer gateway integration service"""
import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional, Sequence

import requests

from daocredit.config import GatewaySettings
from daocredit.errors import (
    CapabilityError,
    CapabilityUnavailableError,
    DecryptionNotPermittedError,
    MalformedCiphertextError,
    RelayerResponseError,
)
from daocredit.models.contribution import CiphertextHandle, DecryptionResult, EncryptedInput
from daocredit.services.fhe import FHECapability

logger = logging.getLogger(__name__)

def _hex(data: bytes) -> str:
    return '0x' + data.hex()

def _unhex(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith('0x') else value)

@contextmanager
def _parsing(endpoint: str) -> Generator[None, None, None]:
    """Turn missing or mistyped response fields into RelayerResponseError"""
    try:
        yield
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.error(f"Unexpected relayer response for {endpoint}: {e!r}")
        raise RelayerResponseError(f"Unexpected relayer response for {endpoint}: {e!r}")

class GatewayFHECapability(FHECapability):
    """Handles all FHE relayer interactions over HTTP"""

    def __init__(self, gateway: GatewaySettings, session: Optional[requests.Session] = None):
        self.base_url = gateway.url.rstrip('/')
        self.api_key = gateway.api_key
        self.timeout = gateway.timeout
        self.retries = max(gateway.retries, 1)
        self.http = session or requests.Session()

    def _make_request(self, method: str, endpoint: str, payload: Optional[Dict[str, Any]] = None) -> dict:
        """Make request to the relayer with retries"""
        headers = {'Accept': 'application/json'}
        if self.api_key:
            headers['x-api-key'] = self.api_key

        for attempt in range(self.retries):
            try:
                response = self.http.request(
                    method,
                    f'{self.base_url}/{endpoint}',
                    json=payload,
                    headers=headers,
                    timeout=self.timeout
                )
            except requests.RequestException as e:
                if attempt == self.retries - 1:
                    logger.error(f"FHE relayer unreachable after {self.retries} attempts: {e}")
                    raise CapabilityUnavailableError(f"FHE relayer unreachable: {e}")
                logger.warning(f"Retrying relayer request after error: {e}")
                time.sleep(2 ** attempt * 0.1)
                continue

            if response.status_code >= 500:
                if attempt == self.retries - 1:
                    raise CapabilityUnavailableError(f"FHE relayer error {response.status_code}: {response.text}")
                logger.warning(f"Retrying relayer request after status {response.status_code}")
                time.sleep(2 ** attempt * 0.1)
                continue

            if response.status_code == 403:
                raise DecryptionNotPermittedError(f"Relayer refused {endpoint}: {response.text}")
            if response.status_code in (400, 422):
                raise MalformedCiphertextError(f"Relayer rejected {endpoint}: {response.text}")
            # 401, 404, 429 and any other client error leave the relayer unusable
            if response.status_code >= 400:
                logger.error(f"FHE relayer returned {response.status_code} for {endpoint}")
                raise CapabilityUnavailableError(f"FHE relayer error {response.status_code}: {response.text}")

            try:
                data = response.json()
            except ValueError as e:
                raise RelayerResponseError(f"Relayer returned invalid JSON for {endpoint}: {e}")
            if not isinstance(data, dict):
                raise RelayerResponseError(f"Relayer returned {type(data).__name__} for {endpoint}, expected object")
            return data

    def is_available(self) -> bool:
        try:
            return bool(self._make_request('GET', 'v1/health').get('ok', False))
        except CapabilityError:
            return False

    def encrypt(self, context: str, caller: str, value: int) -> EncryptedInput:
        data = self._make_request('POST', 'v1/encrypt', {
            'contract': context,
            'caller': caller,
            'type': 'euint32',
            'value': value
        })
        with _parsing('v1/encrypt'):
            return EncryptedInput(handle=CiphertextHandle.from_hex(data['handle']), proof=_unhex(data['proof']))

    def check_well_formed(self, encrypted: EncryptedInput, context: str, caller: str) -> bool:
        data = self._make_request('POST', 'v1/inputs/verify', {
            'contract': context,
            'caller': caller,
            'handle': encrypted.handle.to_hex(),
            'proof': _hex(encrypted.proof)
        })
        return bool(data.get('valid', False))

    def grant_decrypt_access(self, handle: CiphertextHandle) -> None:
        self._make_request('POST', 'v1/acl/public', {'handle': handle.to_hex()})

    def public_decrypt(self, handles: Sequence[CiphertextHandle]) -> DecryptionResult:
        data = self._make_request('POST', 'v1/public-decrypt', {
            'handles': [h.to_hex() for h in handles]
        })
        by_hex = {h.to_hex(): h for h in handles}
        with _parsing('v1/public-decrypt'):
            clear_values = {by_hex[k]: int(v) for k, v in data['clear_values'].items() if k in by_hex}
            return DecryptionResult(
                clear_values=clear_values,
                clear_payload=_unhex(data['abi_encoded_clear_values']),
                proof=_unhex(data['decryption_proof'])
            )

    def verify_clear_value(self, handles: Sequence[CiphertextHandle], clear_payload: bytes, proof: bytes) -> bool:
        data = self._make_request('POST', 'v1/decryption/verify', {
            'handles': [h.to_hex() for h in handles],
            'abi_encoded_clear_values': _hex(clear_payload),
            'decryption_proof': _hex(proof)
        })
        return bool(data.get('valid', False))
