"""
Resource-limit policy: quantities, the layered ceiling model, loading and
live reloading of the policy document.
"""

from limits_admission.policy.loader import PolicyLoader, load_policy_file, parse_policy
from limits_admission.policy.models import UNLIMITED, Ceiling, NameNamespace, PolicyDocument
from limits_admission.policy.quantity import Quantity, QuantityError
from limits_admission.policy.reloader import PolicyReloader, ReloadTrigger
from limits_admission.policy.store import PolicyGeneration, PolicyStore

__all__ = [
    "Ceiling",
    "NameNamespace",
    "PolicyDocument",
    "PolicyGeneration",
    "PolicyLoader",
    "PolicyReloader",
    "PolicyStore",
    "Quantity",
    "QuantityError",
    "ReloadTrigger",
    "UNLIMITED",
    "load_policy_file",
    "parse_policy",
]
