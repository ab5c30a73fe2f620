from __future__ import annotations

import math
import textwrap

import pytest

from collisionbaker.errors import ParseError
from collisionbaker.pipeline import bake_scene
from collisionbaker.records import Constructable, NodePath, StringName
from collisionbaker.tscn_parser import parse, parse_file, tokenize


def test_header_fields_and_body_assignments(body_scene):
    records = parse(body_scene)

    assert [r.identifier for r in records] == ["gd_scene", "sub_resource", "node", "node"]
    body = records[3]
    assert body.fields == {"name": "Body", "type": "CollisionShape3D", "parent": "."}
    assert body.get_assignment("transform") == Constructable(
        "Transform3D", (1, 0, 0, 0, 1, 0, 0, 0, 1, 5, 0, 0)
    )
    assert body.get_assignment("shape") == Constructable("SubResource", ("shape_a",))


def test_record_lines_point_at_headers(body_scene):
    records = parse(body_scene)
    assert [r.line for r in records] == [1, 3, 6, 8]


def test_numbers_keep_int_and_float_apart():
    record = parse("[node a=1 b=-2 c=1.5 d=-0.25 e=1e+06 f=.5]")[0]
    assert record.fields["a"] == 1 and isinstance(record.fields["a"], int)
    assert record.fields["b"] == -2
    assert record.fields["c"] == 1.5
    assert record.fields["d"] == -0.25
    assert record.fields["e"] == 1e6 and isinstance(record.fields["e"], float)
    assert record.fields["f"] == 0.5


def test_keywords():
    record = parse("[node a=true b=false c=null d=inf e=-inf f=nan]")[0]
    assert record.fields["a"] is True
    assert record.fields["b"] is False
    assert record.fields["c"] is None
    assert record.fields["d"] == math.inf
    assert record.fields["e"] == -math.inf
    assert math.isnan(record.fields["f"])


def test_string_escapes_and_multiline_strings():
    text = '[node name="a \\"quoted\\" name"]\ndescription = "line one\nline two\\t!"\n'
    record = parse(text)[0]
    assert record.get_field("name") == 'a "quoted" name'
    assert record.get_assignment("description", str) == "line one\nline two\t!"


def test_string_name_and_node_path():
    record = parse('[node]\ngroup = &"enemies"\ntarget = ^"../Body"\n')[0]
    group = record.assignments["group"]
    target = record.assignments["target"]
    assert isinstance(group, StringName) and group == "enemies"
    assert isinstance(target, NodePath) and target == "../Body"


def test_arrays_dictionaries_and_nested_constructables():
    text = textwrap.dedent(
        """\
        [resource]
        points = [1, 2.5, "x", Vector3(0, 1, 0),]
        meta = {"size": Vector2(2, 3), "tags": ["a", "b"]}
        empty = []
        """
    )
    record = parse(text)[0]
    assert record.assignments["points"] == [1, 2.5, "x", Constructable("Vector3", (0, 1, 0))]
    assert record.assignments["meta"] == {
        "size": Constructable("Vector2", (2, 3)),
        "tags": ["a", "b"],
    }
    assert record.assignments["empty"] == []


def test_typed_array_constructor():
    record = parse("[resource]\nids = Array[int]([1, 2, 3])\n")[0]
    assert record.get_assignment("ids") == Constructable("Array[int]", ([1, 2, 3],))


def test_slash_and_quoted_keys():
    record = parse('[node]\nsurface_material_override/0 = null\n"odd key" = 3\n')[0]
    assert "surface_material_override/0" in record.assignments
    assert record.assignments["odd key"] == 3


def test_comments_are_ignored():
    text = "; leading comment\n[node name=\"A\"] ; trailing\n; between\nvalue = 1\n"
    records = parse(text)
    assert len(records) == 1
    assert records[0].assignments == {"value": 1}


def test_multiline_packed_array():
    text = "[sub_resource id=\"s\"]\ndata = PackedVector3Array(0, 0, 0,\n  1, 0, 0,\n  0, 1, 0)\n"
    data = parse(text)[0].get_assignment("data")
    assert data.identifier == "PackedVector3Array"
    assert len(data.arguments) == 9


def test_first_duplicate_key_wins():
    record = parse('[node name="first" name="second"]\nvalue = 1\nvalue = 2\n')[0]
    assert record.get_field("name") == "first"
    assert record.assignments["value"] == 1


def test_empty_input_gives_no_records():
    assert parse("") == []
    assert parse("; only a comment\n") == []


def test_assignment_before_any_header_is_an_error():
    with pytest.raises(ParseError) as excinfo:
        parse("\nvalue = 1\n")
    assert excinfo.value.line == 2


def test_unterminated_string_is_an_error():
    with pytest.raises(ParseError):
        parse('[node name="Body]\n')


def test_unterminated_header_is_an_error():
    with pytest.raises(ParseError, match="end of input"):
        parse('[node name="Body"')


def test_bare_identifier_value_is_an_error():
    with pytest.raises(ParseError, match="unknown identifier 'Vector3'"):
        parse("[node]\nposition = Vector3\n")


def test_missing_comma_is_reported_with_line():
    with pytest.raises(ParseError) as excinfo:
        parse("[node]\n\nvalue = Vector3(1 2 3)\n")
    assert excinfo.value.line == 3


def test_tokenize_tracks_lines_across_strings():
    tokens = tokenize('a = "x\ny"\nb = 1')
    assert [(t.text, t.line) for t in tokens if t.kind == "key"] == [("a", 1), ("b", 3)]


def test_parse_file(body_scene_file):
    records = parse_file(str(body_scene_file))
    assert records[-1].get_field("name") == "Body"


def test_tile_keys_are_read_up_to_the_equals_sign():
    text = textwrap.dedent(
        """\
        [sub_resource type="TileSetAtlasSource" id="atlas"]
        0:0/0 = 0
        0:0/0/physics_layer_0/polygon_0/points = PackedVector2Array(-8, -8, 8, -8, 8, 8)
        metadata/_edit_lock_ = true
        """
    )
    record = parse(text)[0]
    assert record.assignments["0:0/0"] == 0
    assert record.get_assignment("0:0/0/physics_layer_0/polygon_0/points").identifier == "PackedVector2Array"
    assert record.assignments["metadata/_edit_lock_"] is True


def test_typed_dictionary_constructor():
    record = parse('[resource]\nscores = Dictionary[String, int]({"a": 1})\n')[0]
    assert record.get_assignment("scores") == Constructable("Dictionary[String, int]", ({"a": 1},))


def test_typed_array_of_script_class():
    record = parse('[resource]\nitems = Array[ExtResource("1_x")]([])\n')[0]
    assert record.get_assignment("items") == Constructable('Array[ExtResource("1_x")]', ([],))


def test_inline_object():
    record = parse('[resource]\nevents = [Object(InputEventKey,"resource_local_to_scene":false,"keycode":65)]\n')[0]
    assert record.assignments["events"] == [
        Constructable("Object", ("InputEventKey", {"resource_local_to_scene": False, "keycode": 65}))
    ]


def test_godot4_resources_do_not_stop_the_bake(body_scene):
    extra = textwrap.dedent(
        """\

        [sub_resource type="TileSetAtlasSource" id="atlas"]
        0:0/0 = 0
        scores = Dictionary[String, int]({"a": 1})
        items = Array[ExtResource("1_x")]([])
        events = [Object(InputEventKey,"keycode":65)]
        """
    )
    report = bake_scene(parse(body_scene + extra))
    assert report.baked == ["Body"]
    assert report.triangle_count == 1


def test_out_of_range_unicode_escape_is_an_error():
    with pytest.raises(ParseError) as excinfo:
        parse('[node]\n\nlabel = "\\U110000"\n')
    assert excinfo.value.line == 3


def test_parse_file_rejects_invalid_utf8(tmp_path):
    path = tmp_path / "bad.tscn"
    path.write_bytes(b'[node name="Body"]\nlabel = "\xff\xfe"\n')
    with pytest.raises(ParseError, match="UTF-8") as excinfo:
        parse_file(str(path))
    assert excinfo.value.line == 2
