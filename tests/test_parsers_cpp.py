# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the Clang plist and Valgrind XML parsers."""

from __future__ import annotations

from pathlib import Path

import pytest

from polyaudit.core.severity import UNKNOWN_LABEL_TAG, Category, Confidence, Severity
from polyaudit.errors import ErrorKind, ParsingError
from polyaudit.parsers import ParseContext, XmlParser, parse_clang_plist, parse_valgrind_xml
from polyaudit.parsers.base import load_xml
from polyaudit.parsers.cpp import clang_category, plist_value

CLANG_PLIST = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
 <key>clang_version</key><string>clang version 17.0.6</string>
 <key>diagnostics</key>
 <array>
  <dict>
   <key>path</key>
   <array>
    <dict>
     <key>kind</key><string>event</string>
     <key>ranges</key>
     <array>
      <array>
       <dict><key>line</key><integer>7</integer><key>col</key><integer>3</integer><key>file</key><integer>0</integer></dict>
       <dict><key>line</key><integer>7</integer><key>col</key><integer>9</integer><key>file</key><integer>0</integer></dict>
      </array>
     </array>
    </dict>
   </array>
   <key>description</key><string>Dereference of null pointer (loaded from variable 'p')</string>
   <key>category</key><string>Logic error</string>
   <key>type</key><string>Dereference of null pointer</string>
   <key>check_name</key><string>core.NullDereference</string>
   <key>location</key>
   <dict><key>line</key><integer>7</integer><key>col</key><integer>3</integer><key>file</key><integer>0</integer></dict>
  </dict>
  <dict>
   <key>description</key><string>Value stored to 'x' is never read</string>
   <key>category</key><string>Dead store</string>
   <key>type</key><string>Dead assignment</string>
   <key>check_name</key><string>deadcode.DeadStores</string>
   <key>location</key>
   <dict><key>line</key><integer>11</integer><key>col</key><integer>5</integer><key>file</key><integer>0</integer></dict>
  </dict>
  <dict>
   <key>description</key><string>Broken location</string>
   <key>category</key><string>Logic error</string>
   <key>check_name</key><string>core.DivideZero</string>
   <key>location</key>
   <dict><key>line</key><integer>2</integer><key>col</key><integer>1</integer><key>file</key><integer>4</integer></dict>
  </dict>
 </array>
 <key>files</key>
 <array>
  <string>src/main.c</string>
 </array>
</dict>
</plist>
"""

VALGRIND_XML = """<?xml version="1.0"?>
<valgrindoutput>
<protocolversion>4</protocolversion>
<tool>memcheck</tool>
<error>
  <unique>0x0</unique>
  <tid>1</tid>
  <kind>InvalidRead</kind>
  <what>Invalid read of size 4</what>
  <stack>
    <frame><ip>0x4005A1</ip><obj>/usr/lib/libc.so.6</obj><fn>memcpy</fn><dir>/usr/src/libc</dir><file>memcpy.c</file><line>40</line></frame>
    <frame><ip>0x400530</ip><obj>{root}/demo</obj><fn>main</fn><dir>{root}/src</dir><file>demo.c</file><line>12</line></frame>
  </stack>
</error>
<error>
  <unique>0x1</unique>
  <tid>1</tid>
  <kind>Leak_DefinitelyLost</kind>
  <xwhat>
    <text>40 bytes in 1 blocks are definitely lost in loss record 1 of 1</text>
    <leakedbytes>40</leakedbytes>
    <leakedblocks>1</leakedblocks>
  </xwhat>
  <stack>
    <frame><ip>0x4C2AB80</ip><fn>malloc</fn></frame>
    <frame><ip>0x400537</ip><fn>make_buffer</fn><dir>{root}/src</dir><file>buffer.c</file><line>8</line></frame>
  </stack>
</error>
<error>
  <unique>0x2</unique>
  <kind>SomethingNew</kind>
  <what>Unrecognised complaint</what>
  <stack>
    <frame><fn>main</fn><dir>{root}/src</dir><file>demo.c</file><line>30</line></frame>
  </stack>
</error>
<error>
  <unique>0x3</unique>
  <kind>InvalidWrite</kind>
  <what>Invalid write of size 1</what>
  <stack><frame><ip>0x1</ip><obj>/lib/ld.so</obj></frame></stack>
</error>
</valgrindoutput>
"""


def test_clang_plist_diagnostics(tmp_path: Path) -> None:
    context = ParseContext(tool="clang-static-analyzer", root=tmp_path)

    issues = XmlParser(parse_clang_plist).parse(CLANG_PLIST, context=context)

    assert [issue.rule for issue in issues] == ["core.NullDereference", "deadcode.DeadStores"]
    null_deref, dead_store = issues
    assert null_deref.file == str(tmp_path / "src" / "main.c")
    assert null_deref.category == Category.MEMORY_SAFETY.value
    assert null_deref.severity is Severity.MEDIUM
    assert null_deref.title == "Dereference of null pointer"
    assert (null_deref.line, null_deref.column, null_deref.end_line, null_deref.end_column) == (7, 3, 7, 9)
    assert null_deref.pattern_hints == ["null_deref"]
    assert null_deref.confidence is Confidence.MEDIUM
    assert "logic-error" in null_deref.tags
    assert dead_store.category == Category.DEAD_CODE.value
    assert UNKNOWN_LABEL_TAG in dead_store.tags
    assert context.dropped == 1


def test_clang_plist_without_diagnostics(tmp_path: Path) -> None:
    context = ParseContext(tool="clang-static-analyzer", root=tmp_path)
    document = '<plist version="1.0"><dict><key>files</key><array/><key>diagnostics</key><array/></dict></plist>'

    assert XmlParser(parse_clang_plist).parse(document, context=context) == []


def test_plist_value_scalars() -> None:
    element = load_xml(
        "<dict><key>a</key><integer>3</integer><key>b</key><real>1.5</real>"
        "<key>c</key><true/><key>d</key><array><string>x</string></array></dict>",
    )

    assert plist_value(element) == {"a": 3, "b": 1.5, "c": True, "d": ["x"]}


def test_clang_category_prefers_checker_name() -> None:
    assert clang_category("core.DivideZero", "Logic error") is Category.CORRECTNESS
    assert clang_category("security.insecureAPI.gets", "Logic error") is Category.SECURITY
    assert clang_category(None, "Memory error") is Category.MEMORY_SAFETY
    assert clang_category("optin.performance.Padding", "Performance") is Category.OTHER


def test_valgrind_errors(tmp_path: Path) -> None:
    context = ParseContext(tool="valgrind", root=tmp_path)
    document = VALGRIND_XML.replace("{root}", str(tmp_path))

    issues = XmlParser(parse_valgrind_xml).parse(document, context=context)

    assert [issue.rule for issue in issues] == ["invalid-read", "memory-leak", "unknown"]
    invalid_read, leak, unknown = issues
    assert invalid_read.file == str(tmp_path / "src" / "demo.c")
    assert invalid_read.line == 12
    assert invalid_read.severity is Severity.HIGH
    assert invalid_read.category == Category.MEMORY_SAFETY.value
    assert leak.file == str(tmp_path / "src" / "buffer.c")
    assert "Leaked bytes: 40" in (leak.description or "")
    assert "In function: make_buffer" in (leak.description or "")
    assert leak.pattern_hints == ["memory_leak"]
    assert not unknown.severity_known
    assert UNKNOWN_LABEL_TAG in unknown.tags
    assert context.dropped == 1


def test_xml_entities_are_rejected(tmp_path: Path) -> None:
    context = ParseContext(tool="valgrind", root=tmp_path)
    document = (
        '<?xml version="1.0"?><!DOCTYPE v [<!ENTITY boom "boom">]>'
        "<valgrindoutput><error><kind>&boom;</kind></error></valgrindoutput>"
    )

    with pytest.raises(ParsingError):
        XmlParser(parse_valgrind_xml).parse(document, context=context)


def test_empty_xml_is_unparseable(tmp_path: Path) -> None:
    with pytest.raises(ParsingError):
        XmlParser(parse_valgrind_xml).parse("  ", context=ParseContext(tool="valgrind", root=tmp_path))


def test_valgrind_prefers_frames_inside_the_root_over_sibling_prefixes(tmp_path: Path) -> None:
    root = tmp_path / "proj"
    context = ParseContext(tool="valgrind", root=root)
    document = f"""<?xml version="1.0"?>
<valgrindoutput>
<error>
  <kind>InvalidRead</kind>
  <what>Invalid read of size 4</what>
  <stack>
    <frame><fn>helper</fn><dir>{tmp_path}/proj-lib</dir><file>lib.c</file><line>4</line></frame>
    <frame><fn>main</fn><dir>{root}</dir><file>main.c</file><line>9</line></frame>
  </stack>
</error>
</valgrindoutput>
"""

    (issue,) = XmlParser(parse_valgrind_xml).parse(document, context=context)

    assert issue.file == str(root / "main.c")
    assert issue.line == 9


def test_deeply_nested_plist_is_unparseable(tmp_path: Path) -> None:
    context = ParseContext(tool="clang-static-analyzer", root=tmp_path)
    document = "<plist>" + "<array>" * 5_000 + "</array>" * 5_000 + "</plist>"

    with pytest.raises(ParsingError) as excinfo:
        XmlParser(parse_clang_plist).parse(document, context=context)
    assert excinfo.value.kind is ErrorKind.UNPARSEABLE_OUTPUT
