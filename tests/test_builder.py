"""Tests for DataBoxBuilder, SuperBoxBuilder and PlaceholderDataBox."""

from __future__ import annotations

import io
import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from jumbf import (
    DataBoxBuilder,
    PlaceholderDataBox,
    SuperBox,
    SuperBoxBuilder,
)

EXAMPLE = bytes.fromhex(
    "0000002f" "6a756d62"
    "00000027" "6a756d64" + "00" * 16 + "03"
    "746573742e7375706572626f7800")


class BrokenSink:
    def write(self, data):
        raise OSError("disk full")


# ── Superbox serialization ────────────────────────────────────

class TestSuperBoxBuilder(unittest.TestCase):
    def test_header_example_bytes(self):
        builder = SuperBoxBuilder(bytes(16), label="test.superbox", requestable=True)
        self.assertEqual(builder.to_bytes(), EXAMPLE)
        self.assertEqual(builder.box_size(), 47)

    def test_two_children(self):
        builder = SuperBoxBuilder(bytes(16))
        builder.add_child_box(DataBoxBuilder(b"json", b'{"x":1}'))
        builder.add_child_box(DataBoxBuilder(b"abcd", b"\x01\x02\x03"))
        sbox, rest = SuperBox.from_slice(builder.to_bytes())
        self.assertEqual(len(rest), 0)
        self.assertEqual([c.box_type for c in sbox.child_boxes], [b"json", b"abcd"])
        self.assertEqual([c.as_data_box().data for c in sbox.child_boxes],
                         [b'{"x":1}', b"\x01\x02\x03"])
        self.assertIsNone(sbox.desc.label)
        self.assertFalse(sbox.desc.requestable)

    def test_all_fields_round_trip(self):
        builder = SuperBoxBuilder(b"\x07" * 16, label="c2pa.assertions",
                                  requestable=True, id=0xFFFFFFFF,
                                  hash=b"\x5a" * 32, private=b"\x00secret")
        inner = SuperBoxBuilder(b"\x08" * 16, label="c2pa.hash.data", requestable=True)
        inner.add_child_box(DataBoxBuilder("cbor", b"\xa0"))
        builder.add_child_box(inner)
        raw = builder.to_bytes()

        for sbox in (SuperBox.from_slice(raw)[0], SuperBox.from_reader(io.BytesIO(raw))):
            with self.subTest(owned=sbox.original.is_owned):
                desc = sbox.desc
                self.assertEqual(desc.uuid, b"\x07" * 16)
                self.assertEqual(desc.label, "c2pa.assertions")
                self.assertTrue(desc.requestable)
                self.assertEqual(desc.id, 0xFFFFFFFF)
                self.assertEqual(desc.hash, b"\x5a" * 32)
                self.assertEqual(desc.private, b"\x00secret")
                found = sbox.find_by_label("c2pa.hash.data")
                self.assertEqual(found.data_box().data, b"\xa0")
                self.assertEqual(sbox.original, raw)

    def test_reparsed_description_reencodes(self):
        builder = SuperBoxBuilder(bytes(16), label="x", id=3, private=b"p")
        sbox, _ = SuperBox.from_slice(builder.to_bytes())
        self.assertEqual(sbox.desc.payload_bytes(), builder._desc_payload())

    def test_empty_label_differs_from_none(self):
        with_empty = SuperBoxBuilder(bytes(16), label="").to_bytes()
        without = SuperBoxBuilder(bytes(16)).to_bytes()
        self.assertEqual(len(with_empty), len(without) + 1)
        self.assertEqual(SuperBox.from_slice(with_empty)[0].desc.label, "")
        self.assertIsNone(SuperBox.from_slice(without)[0].desc.label)

    def test_utf8_label(self):
        raw = SuperBoxBuilder(bytes(16), label="métadonnées").to_bytes()
        self.assertEqual(SuperBox.from_slice(raw)[0].desc.label, "métadonnées")

    def test_box_size_matches_output(self):
        builder = SuperBoxBuilder(bytes(16), label="a")
        nested = SuperBoxBuilder(bytes(16))
        nested.add_child_box(DataBoxBuilder(b"json", b"[]"))
        builder.add_child_box(nested)
        builder.add_child_box(DataBoxBuilder(b"bfdb", bytes(100)))
        raw = builder.to_bytes()
        self.assertEqual(builder.box_size(), len(raw))
        self.assertEqual(builder.payload_size(), len(raw) - 8)

    def test_write_jumbf_returns_size(self):
        builder = SuperBoxBuilder(bytes(16), label="test.superbox", requestable=True)
        sink = io.BytesIO()
        sink.write(b"prefix")
        written = builder.write_jumbf(sink)
        self.assertEqual(written, 47)
        self.assertEqual(sink.getvalue(), b"prefix" + EXAMPLE)

    def test_child_order_kept(self):
        builder = SuperBoxBuilder(bytes(16))
        for t in ("dddd", "aaaa", "cccc"):
            builder.add_child_box(DataBoxBuilder(t, b""))
        self.assertEqual([str(c.box_type) for c in builder.child_boxes],
                         ["dddd", "aaaa", "cccc"])
        sbox, _ = SuperBox.from_slice(builder.to_bytes())
        self.assertEqual([c.box_type for c in sbox.child_boxes], [b"dddd", b"aaaa", b"cccc"])

    def test_sink_error_propagates(self):
        with self.assertRaises(OSError):
            SuperBoxBuilder(bytes(16)).write_jumbf(BrokenSink())

    def test_deeper_than_interpreter_stack(self):
        root = SuperBoxBuilder(bytes(16))
        node = root
        for _ in range(1499):
            child = SuperBoxBuilder(bytes(16))
            node.add_child_box(child)
            node = child
        node.add_child_box(DataBoxBuilder(b"json", b"{}"))
        raw = root.to_bytes()
        self.assertEqual(root.box_size(), len(raw))
        self.assertEqual(root.payload_size(), len(raw) - 8)

        sbox, rest = SuperBox.from_slice(raw)
        self.assertEqual(len(rest), 0)
        depth = 1
        while sbox.child_boxes[0].is_super_box:
            sbox = sbox.child_boxes[0].as_super_box()
            depth += 1
        self.assertEqual(depth, 1500)
        self.assertEqual(sbox.data_box().data, b"{}")

    def test_shared_child_written_twice(self):
        shared = SuperBoxBuilder(bytes(16), label="s")
        shared.add_child_box(DataBoxBuilder(b"json", b"[]"))
        builder = SuperBoxBuilder(bytes(16))
        builder.add_child_box(shared)
        builder.add_child_box(shared)
        sbox, _ = SuperBox.from_slice(builder.to_bytes())
        self.assertEqual(sbox.child_boxes[0], sbox.child_boxes[1])
        self.assertEqual(builder.box_size(), len(sbox.original))

    def test_self_containing_builder(self):
        builder = SuperBoxBuilder(bytes(16))
        builder.add_child_box(builder)
        with self.assertRaises(ValueError):
            builder.to_bytes()

    def test_payload_writes_description_and_children(self):
        builder = SuperBoxBuilder(bytes(16), label="test.superbox", requestable=True)
        builder.add_child_box(DataBoxBuilder(b"json", b"{}"))
        sink = io.BytesIO()
        builder.write_payload(sink)
        self.assertEqual(sink.getvalue(), builder.to_bytes()[8:])


class TestBuilderValidation(unittest.TestCase):
    def test_uuid_length(self):
        with self.assertRaises(ValueError):
            SuperBoxBuilder(bytes(15))

    def test_label_with_nul(self):
        with self.assertRaises(ValueError):
            SuperBoxBuilder(bytes(16), label="a\x00b")

    def test_id_range(self):
        with self.assertRaises(ValueError):
            SuperBoxBuilder(bytes(16), id=-1)
        with self.assertRaises(ValueError):
            SuperBoxBuilder(bytes(16), id=1 << 32)

    def test_hash_length(self):
        with self.assertRaises(ValueError):
            SuperBoxBuilder(bytes(16), hash=bytes(31))

    def test_box_type_length(self):
        with self.assertRaises(ValueError):
            DataBoxBuilder(b"abc", b"")

    def test_child_type(self):
        with self.assertRaises(TypeError):
            SuperBoxBuilder(bytes(16)).add_child_box(b"not a builder")


# ── Data boxes ────────────────────────────────────────────────

class TestDataBoxBuilder(unittest.TestCase):
    def test_bytes(self):
        builder = DataBoxBuilder(b"json", b"{}")
        self.assertEqual(builder.to_bytes(), b"\x00\x00\x00\x0ajson{}")
        self.assertEqual(builder.box_size(), 10)

    def test_empty_payload(self):
        self.assertEqual(DataBoxBuilder("free", b"").to_bytes(), b"\x00\x00\x00\x08free")

    def test_borrowed_sees_later_changes(self):
        buf = bytearray(b"old")
        builder = DataBoxBuilder.from_borrowed(b"abcd", buf)
        buf[:] = b"new"
        self.assertEqual(builder.to_bytes()[8:], b"new")

    def test_owned_is_a_copy(self):
        buf = bytearray(b"old")
        builder = DataBoxBuilder.from_owned(b"abcd", buf)
        buf[:] = b"new"
        self.assertEqual(builder.to_bytes()[8:], b"old")
        self.assertEqual(builder.data, b"old")

    def test_bytes_not_copied(self):
        payload = b"x" * 64
        self.assertIs(DataBoxBuilder(b"abcd", payload).data, payload)


# ── Placeholders ──────────────────────────────────────────────

class TestPlaceholderDataBox(unittest.TestCase):
    def build(self):
        builder = SuperBoxBuilder(bytes(16), label="c2pa.signature", requestable=True)
        placeholder = PlaceholderDataBox(b"cbor", 8)
        builder.add_child_box(placeholder)
        return builder, placeholder

    def test_reserves_zeros(self):
        builder, placeholder = self.build()
        self.assertIsNone(placeholder.offset)
        raw = builder.to_bytes()
        sbox, _ = SuperBox.from_slice(raw)
        self.assertEqual(sbox.data_box().data, bytes(8))
        self.assertEqual(placeholder.offset, 56)

    def test_replace_payload(self):
        builder, placeholder = self.build()
        sink = io.BytesIO()
        builder.write_jumbf(sink)
        end = sink.tell()
        placeholder.replace_payload(sink, b"sig")
        self.assertEqual(sink.tell(), end)
        sbox, _ = SuperBox.from_slice(sink.getvalue())
        self.assertEqual(sbox.data_box().data, b"sig" + bytes(5))
        self.assertEqual(sbox.data_box().offset_within_superbox(sbox), placeholder.offset)

    def test_offset_counts_prior_sink_bytes(self):
        builder, placeholder = self.build()
        sink = io.BytesIO()
        sink.write(bytes(10))
        builder.write_jumbf(sink)
        self.assertEqual(placeholder.offset, 66)

    def test_replace_too_large(self):
        builder, placeholder = self.build()
        sink = io.BytesIO()
        builder.write_jumbf(sink)
        with self.assertRaises(ValueError):
            placeholder.replace_payload(sink, bytes(9))

    def test_replace_before_write(self):
        _builder, placeholder = self.build()
        with self.assertRaises(ValueError):
            placeholder.replace_payload(io.BytesIO(), b"x")

    def test_negative_size(self):
        with self.assertRaises(ValueError):
            PlaceholderDataBox(b"cbor", -1)


if __name__ == "__main__":
    unittest.main()
