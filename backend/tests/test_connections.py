import pytest
from configflow.connections import missing_child_suggestions, uniqueness_violation, validate_connection
from configflow.models import Edge, Node


@pytest.mark.parametrize(
    "source,target,reason",
    [
        ("container", "module", "Containers hold modules"),
        ("module", "group", "Modules hold groups"),
        ("group", "option", "Groups hold options"),
    ],
)
def test_allowed_pairs(source, target, reason):
    check = validate_connection(source, target)
    assert check.valid is True
    assert check.message == reason


def test_reverse_direction_is_rejected():
    check = validate_connection("option", "group")
    assert check.valid is False
    assert check.message == "Wrong direction: connect group → option instead"


def test_same_kind_is_rejected():
    check = validate_connection("group", "group")
    assert check.valid is False
    assert check.message == "Cannot connect group to group"


def test_skipped_level_names_hierarchy():
    check = validate_connection("container", "option")
    assert check.valid is False
    assert "cannot directly connect to option" in check.message
    assert "Container → Module → Group → Option" in check.message


def test_option_to_option_is_same_kind_not_reverse():
    assert validate_connection("option", "option").message == "Cannot connect option to option"


def test_duplicate_edge_reported_before_parent():
    edges = [Edge(source="g1", target="o1")]
    assert uniqueness_violation("g1", "o1", edges) == "This connection already exists"


def test_second_parent_is_rejected():
    edges = [Edge(source="g1", target="o1")]
    assert uniqueness_violation("g2", "o1", edges) == "This node already has a parent connection"


def test_new_child_is_accepted():
    edges = [Edge(source="g1", target="o1")]
    assert uniqueness_violation("g1", "o2", edges) is None


def test_requires_overlay_is_not_a_parent():
    edges = [Edge(source="o2", target="o1", rel="requires")]
    assert uniqueness_violation("g1", "o1", edges) is None


def test_missing_child_suggestions():
    group = Node(id="g", kind="group", label="G")
    option = Node(id="o", kind="option", label="O")

    empty = missing_child_suggestions(group, [])
    assert [(s.label, s.required) for s in empty] == [("Add Option", True), ("Add Toggle", False)]

    one = missing_child_suggestions(group, [option])
    assert [s.label for s in one] == ["Add Toggle"]

    two = missing_child_suggestions(group, [option, option.model_copy(update={"id": "o2"})])
    assert two == []

    assert missing_child_suggestions(option, []) == []
