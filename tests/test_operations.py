import pytest

from iloader.core.operations import get_operation, operation_ids
from iloader.errors import IloaderError, UnknownOperationError


def test_catalog_contents():
    assert operation_ids() == ("install_sidestore", "install_livecontainer", "sideload")
    assert get_operation("install_sidestore").step_ids == ("download", "install", "pairing")
    assert get_operation("sideload").success_title is None


def test_operation_ids_are_unique_and_match_keys():
    for op_id in operation_ids():
        assert get_operation(op_id).id == op_id


def test_unknown_operation_raises():
    with pytest.raises(UnknownOperationError) as exc:
        get_operation("nope")

    assert isinstance(exc.value, KeyError)
    assert isinstance(exc.value, IloaderError)


def test_operations_are_immutable():
    op = get_operation("sideload")
    with pytest.raises(AttributeError):
        op.title = "changed"  # type: ignore[misc]
