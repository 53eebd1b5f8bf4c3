from __future__ import annotations

import pytest

from service_manager import events
from service_manager.collaborators.memory import (
    InMemoryDirectory,
    InMemoryRegistry,
    InMemoryRewardsCoordinator,
    InMemoryStakeRegistry,
    InMemoryTokenLedger,
)
from service_manager.common.config import ServiceManagerConfig
from service_manager.contracts.models import ZERO_ADDRESS
from service_manager.errors import AuthorizationError, CollaboratorFailure, MalformedInputError
from service_manager.service import ServiceManager
from tests.conftest import (
    OPERATOR_X,
    OWNER,
    REGISTRY_COORDINATOR,
    REWARDS_INITIATOR,
    SERVICE_MANAGER,
    STRANGER,
    World,
)


def test_owner_updates_metadata_uri(world: World) -> None:
    world.manager.update_metadata_uri(caller=OWNER, uri="https://example.org/avs.json")

    assert world.directory.metadata_uri == "https://example.org/avs.json"
    assert world.events[-1].name == events.METADATA_URI_UPDATED
    assert world.events[-1].data == {"uri": "https://example.org/avs.json"}


def test_stranger_cannot_update_metadata(world: World) -> None:
    with pytest.raises(AuthorizationError):
        world.manager.update_metadata_uri(caller=STRANGER, uri="https://evil.example")

    assert world.directory.calls == []
    assert world.events == []


def test_directory_failure_on_metadata_update(world: World) -> None:
    world.directory.fail_on.add("update_metadata")

    with pytest.raises(CollaboratorFailure):
        world.manager.update_metadata_uri(caller=OWNER, uri="https://example.org")

    assert world.events == []


def test_set_rewards_initiator_rotates_authority(world: World) -> None:
    world.manager.set_rewards_initiator(caller=OWNER, new_initiator=STRANGER)

    assert world.manager.rewards_initiator == STRANGER
    event = world.events[-1]
    assert event.name == events.REWARDS_INITIATOR_UPDATED
    assert event.data == {"previous_initiator": REWARDS_INITIATOR, "new_initiator": STRANGER}

    with pytest.raises(AuthorizationError):
        world.manager.create_rewards_submission(caller=REWARDS_INITIATOR, submissions=[])


def test_only_owner_may_set_rewards_initiator(world: World) -> None:
    with pytest.raises(AuthorizationError):
        world.manager.set_rewards_initiator(caller=REWARDS_INITIATOR, new_initiator=STRANGER)
    assert world.manager.rewards_initiator == REWARDS_INITIATOR


def test_transfer_ownership(world: World) -> None:
    world.manager.transfer_ownership(caller=OWNER, new_owner=STRANGER)

    assert world.manager.owner == STRANGER
    assert world.events[-1].data == {"previous_owner": OWNER, "new_owner": STRANGER}
    with pytest.raises(AuthorizationError):
        world.manager.update_metadata_uri(caller=OWNER, uri="x")
    world.manager.update_metadata_uri(caller=STRANGER, uri="x")


def test_transfer_ownership_rejects_zero_and_invalid_owner(world: World) -> None:
    with pytest.raises(MalformedInputError):
        world.manager.transfer_ownership(caller=OWNER, new_owner=ZERO_ADDRESS)
    with pytest.raises(MalformedInputError):
        world.manager.transfer_ownership(caller=OWNER, new_owner="owner")
    assert world.manager.owner == OWNER


def test_registry_coordinator_forwards_registration(world: World) -> None:
    world.manager.register_operator(caller=REGISTRY_COORDINATOR, operator=OPERATOR_X, proof=b"sig")
    assert world.directory.registered == {OPERATOR_X: b"sig"}

    world.manager.deregister_operator(caller=REGISTRY_COORDINATOR, operator=OPERATOR_X)
    assert world.directory.registered == {}
    assert [e.name for e in world.events] == [events.OPERATOR_REGISTERED, events.OPERATOR_DEREGISTERED]


def test_registration_is_registry_coordinator_only(world: World) -> None:
    with pytest.raises(AuthorizationError):
        world.manager.register_operator(caller=OWNER, operator=OPERATOR_X, proof=b"sig")
    with pytest.raises(AuthorizationError):
        world.manager.deregister_operator(caller=STRANGER, operator=OPERATOR_X)
    assert world.directory.calls == []


def test_deregistering_unknown_operator_is_collaborator_failure(world: World) -> None:
    with pytest.raises(CollaboratorFailure) as exc:
        world.manager.deregister_operator(caller=REGISTRY_COORDINATOR, operator=OPERATOR_X)
    assert exc.value.operation == "deregister_operator"
    assert isinstance(exc.value.__cause__, KeyError)


def test_failing_subscriber_does_not_undo_mutation(world: World) -> None:
    def _boom(event) -> None:
        raise RuntimeError("subscriber down")

    world.manager.events.subscribe(_boom)
    world.manager.set_rewards_initiator(caller=OWNER, new_initiator=STRANGER)

    assert world.manager.rewards_initiator == STRANGER
    assert world.events[-1].name == events.REWARDS_INITIATOR_UPDATED


def test_unsubscribe_stops_notifications(world: World) -> None:
    seen = []
    unsubscribe = world.manager.events.subscribe(seen.append)
    world.manager.update_metadata_uri(caller=OWNER, uri="a")
    unsubscribe()
    world.manager.update_metadata_uri(caller=OWNER, uri="b")

    assert [e.data["uri"] for e in seen] == ["a"]


def test_events_in_one_invocation_share_an_invocation_id(world: World) -> None:
    world.manager.migrate_and_create_operator_sets(caller=OWNER)
    created, migrated = world.events
    assert created.invocation_id
    assert created.invocation_id == migrated.invocation_id

    world.manager.update_metadata_uri(caller=OWNER, uri="a")
    assert world.events[-1].invocation_id != created.invocation_id


def test_from_config_and_accessors() -> None:
    config = ServiceManagerConfig.from_env(
        {
            "SERVICE_MANAGER_ADDRESS": SERVICE_MANAGER,
            "SERVICE_MANAGER_OWNER": OWNER,
            "REWARDS_INITIATOR": REWARDS_INITIATOR,
            "REGISTRY_COORDINATOR": REGISTRY_COORDINATOR,
        }
    )
    directory = InMemoryDirectory()
    manager = ServiceManager.from_config(
        config,
        directory=directory,
        registry=InMemoryRegistry(),
        stake_registry=InMemoryStakeRegistry(),
        rewards_coordinator=InMemoryRewardsCoordinator(),
        tokens=InMemoryTokenLedger(),
    )

    assert manager.directory is directory
    assert manager.address == SERVICE_MANAGER
    assert manager.owner == OWNER
    assert manager.rewards_initiator == REWARDS_INITIATOR
    assert not manager.migration_completed
