"""Fingerprinting logic for identifying tests across runs.

This module provides the algorithm for converting a TestIdentity into
a stable fingerprint, the join key between a test's start and completion
events and between local results and previously published history.
"""

import hashlib
import json

from .models import TestIdentity


class Fingerprinter:
    """Produces stable fingerprints from test identities.

    No external dependencies, pure function over domain objects.
    All methods are static as the class carries no state.
    """

    @staticmethod
    def fingerprint(identity: TestIdentity, key: str | None = None) -> str:
        """Create a stable hash that identifies this test.

        Same test, different run → same fingerprint.

        Without a key the fingerprint combines:
        - Namespace
        - Declaring type
        - Method name (including any parametrization suffix)

        When the test declares an explicit key, the key alone determines
        the fingerprint. Renaming or moving a keyed test therefore keeps
        its identity, and its published history stays attached to it.
        """
        if key:
            fingerprint_input = f"key:{key}"
        else:
            # JSON keeps component boundaries unambiguous ("a|b", "c" vs "a", "b|c")
            fingerprint_input = json.dumps(
                [identity.namespace, identity.type_name, identity.method_name]
            )
        return hashlib.sha256(fingerprint_input.encode()).hexdigest()
