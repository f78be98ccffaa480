#tests/test_optional_subsystems.py

from __future__ import annotations

from capabilities.optional import ABSENT, Absent, Present, StaticSubsystem, resolve, subsystem_state


def test_resolve_wraps_once():
    sub = StaticSubsystem("needs", {"hunger": 0.5})
    assert isinstance(resolve(sub), Present)
    assert resolve(None) is ABSENT
    assert isinstance(resolve(None), Absent)


def test_subsystem_state_is_empty_until_initialized():
    sub = StaticSubsystem("needs", {"hunger": 0.5})
    capability = resolve(sub)
    assert subsystem_state(capability) == {}

    sub.initialize()
    assert subsystem_state(capability) == {"hunger": 0.5}

    sub.set_state({"rest": 0.1})
    assert subsystem_state(capability) == {"hunger": 0.5, "rest": 0.1}

    sub.set_state({"rest": 0.9}, merge=False)
    assert subsystem_state(capability) == {"rest": 0.9}

    sub.shutdown()
    assert subsystem_state(capability) == {}


def test_absent_subsystem_reads_as_empty():
    assert subsystem_state(ABSENT) == {}
    assert ABSENT.map(lambda s: "never", "default") == "default"
