from __future__ import annotations

import json

from livepatch.config.schema import SrcChange, TextChange
from livepatch.core.dom_scripts import build_preview_scripts


def test_preview_scripts_embed_values_as_json():
    apply_code, undo_code = build_preview_scripts(
        "//button[@class=\"btn\"]",
        {"backgroundColor": "red"},
        TextChange(old_text="Old", new_text="It's \"new\""),
    )
    assert json.dumps("//button[@class=\"btn\"]") in apply_code
    assert '{"background-color": "red"}' in apply_code
    assert json.dumps("It's \"new\"") in apply_code
    assert "const src = null;" in apply_code
    assert "delete store[" in undo_code


def test_each_preview_gets_its_own_snapshot_key():
    first_apply, first_undo = build_preview_scripts("/html/body/img", src_change=SrcChange(new_src="b.png"))
    second_apply, _ = build_preview_scripts("/html/body/img", src_change=SrcChange(new_src="b.png"))
    assert first_apply != second_apply
    key_line = next(line for line in first_apply.splitlines() if line.strip().startswith("store["))
    key = key_line.strip()[len("store[") : key_line.strip().index("]")]
    assert f"store[{key}]" in first_undo
