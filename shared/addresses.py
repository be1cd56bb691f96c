from __future__ import annotations

# ========================================
#           ADDRESS BUILDERS
# ========================================
"""
Gateway addresses are opaque strings. They are built by interpolation
and never parsed back. Hubs use their own pattern ("SERV:<hubId>:hub")
while every other entity is "<namespace>:<service>:<id>".
"""

SESSION_DESTINATION = "SERV:sess:"


def place(place_id: str) -> str:
    return f"SERV:place:{place_id}"


def person(person_id: str) -> str:
    return f"SERV:person:{person_id}"


def device(device_id: str) -> str:
    return f"DRIV:dev:{device_id}"


def hub(hub_id: str) -> str:
    return f"SERV:{hub_id}:hub"


def scene(scene_id: str = "") -> str:
    """Scene address; an empty id addresses the scene service itself"""
    return f"SERV:scene:{scene_id}"


def rule(rule_id: str = "") -> str:
    """Rule address; an empty id addresses the rule service itself"""
    return f"SERV:rule:{rule_id}"


def rule_template(template_id: str) -> str:
    return f"SERV:ruletmpl:{template_id}"


def product(product_id: str) -> str:
    return f"SERV:product:{product_id}"


def subsystem(namespace: str, place_id: str) -> str:
    """
    Per-place subsystem address, e.g. subsystem("subalarm", place_id).
    """
    return f"SERV:{namespace}:{place_id}"


def service(name: str) -> str:
    """
    Address of a platform service, e.g. service("subs") -> "SERV:subs:".
    """
    return f"SERV:{name}:"
