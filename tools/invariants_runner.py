#!/usr/bin/env python3
# tools/invariants_runner.py
#
# Build/parse invariants (property tests) for the jumbf package.
#
# This runner:
# - generates random superbox trees with SuperBoxBuilder within limits
# - serializes them and parses them back with both parsers
# - checks that the trees agree with what was built and with each other
#
# Exit code:
#   0 -> all checks passed
#   1 -> invariant violation

import io, os, sys, random
from typing import Any, Dict, Optional

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT)

from jumbf import (
    DataBoxBuilder,
    JumbfError,
    RecursionLimitError,
    SuperBox,
    SuperBoxBuilder,
)

SEED = int(os.environ.get("JUMBF_SEED", "1337"))
TRIALS = int(os.environ.get("JUMBF_TRIALS", "2000"))
MAX_GEN_DEPTH = int(os.environ.get("JUMBF_GEN_MAX_DEPTH", "6"))
MAX_CHILDREN = int(os.environ.get("JUMBF_GEN_MAX_CHILDREN", "5"))
MAX_LABEL = int(os.environ.get("JUMBF_GEN_MAX_LABEL", "24"))
MAX_PAYLOAD = int(os.environ.get("JUMBF_GEN_MAX_PAYLOAD", "64"))

random.seed(SEED)

BOX_TYPES = ["json", "cbor", "c2sh", "bidb", "uuid", "abcd"]

def rand_label() -> Optional[str]:
    # Scalars excluding surrogates and NUL; None and "" both occur.
    if random.random() < 0.2:
        return None
    out = []
    for _ in range(random.randint(0, MAX_LABEL)):
        r = random.random()
        if r < 0.80:
            out.append(chr(random.randint(0x20, 0x7E)))
        elif r < 0.95:
            out.append(chr(random.randint(0x0100, 0xD7FF)))
        else:
            out.append(chr(random.randint(0x10000, 0x10FFFF)))
    return "".join(out)

def rand_bytes(nmax: int) -> bytes:
    return bytes(random.getrandbits(8) for _ in range(random.randint(0, nmax)))

def gen_superbox(depth: int) -> SuperBoxBuilder:
    sb = SuperBoxBuilder(
        bytes(random.getrandbits(8) for _ in range(16)),
        label=rand_label(),
        requestable=random.random() < 0.5,
        id=random.getrandbits(32) if random.random() < 0.3 else None,
        hash=bytes(random.getrandbits(8) for _ in range(32)) if random.random() < 0.2 else None,
        private=rand_bytes(MAX_PAYLOAD) if random.random() < 0.2 else None,
    )
    for _ in range(random.randint(0, MAX_CHILDREN)):
        if depth < MAX_GEN_DEPTH and random.random() < 0.3:
            sb.add_child_box(gen_superbox(depth + 1))
        else:
            sb.add_child_box(DataBoxBuilder(random.choice(BOX_TYPES), rand_bytes(MAX_PAYLOAD)))
    return sb

def tree_depth(sb: SuperBoxBuilder) -> int:
    nested = [tree_depth(c) for c in sb.child_boxes if isinstance(c, SuperBoxBuilder)]
    return 1 + max(nested, default=0)

def rebuild(sbox: SuperBox) -> SuperBoxBuilder:
    desc = sbox.desc
    sb = SuperBoxBuilder(
        desc.uuid,
        label=desc.label.as_str() if desc.label is not None else None,
        requestable=desc.requestable,
        id=desc.id,
        hash=desc.hash,
        private=desc.private.to_bytes() if desc.private is not None else None,
    )
    for child in sbox.child_boxes:
        if child.is_super_box:
            sb.add_child_box(rebuild(child.as_super_box()))
        else:
            data_box = child.as_data_box()
            sb.add_child_box(DataBoxBuilder(data_box.box_type, data_box.data.to_bytes()))
    return sb

def matches_builder(sbox: SuperBox, sb: SuperBoxBuilder) -> bool:
    desc = sbox.desc
    if desc.uuid != sb.uuid or desc.requestable != sb.requestable:
        return False
    if (desc.label.as_str() if desc.label is not None else None) != sb.label:
        return False
    if desc.id != sb.id or desc.hash != sb.hash:
        return False
    if (desc.private.to_bytes() if desc.private is not None else None) != sb.private:
        return False
    if len(sbox.child_boxes) != len(sb.child_boxes):
        return False
    for child, built in zip(sbox.child_boxes, sb.child_boxes):
        if isinstance(built, SuperBoxBuilder):
            if not child.is_super_box or not matches_builder(child.as_super_box(), built):
                return False
        elif child.box_type != built.box_type or child.as_data_box().data != built.data:
            return False
    return True

def offsets_consistent(sbox: SuperBox) -> bool:
    whole = sbox.original.as_memoryview()
    for child in sbox.child_boxes:
        if child.is_super_box:
            if not offsets_consistent(child.as_super_box()):
                return False
            continue
        data_box = child.as_data_box()
        off = data_box.offset_within_superbox(sbox)
        if off is None or whole[off:off + len(data_box.data)] != data_box.data.as_memoryview():
            return False
    return True

def fail(name: str, ctx: Dict[str, Any]) -> int:
    print("INVARIANT FAIL:", name)
    print("CTX:", ctx)
    return 1

def main() -> int:
    for t in range(TRIALS):
        sb = gen_superbox(1)
        ctx: Dict[str, Any] = {"trial": t, "seed": SEED}

        # (1) Serialization stability and measured size
        raw = sb.to_bytes()
        if sb.to_bytes() != raw:
            return fail("serialize stability", ctx)
        if sb.box_size() != len(raw):
            return fail("box_size matches output", ctx)
        ctx["input_hex"] = raw.hex()[:4000]

        # (2) Slice parse consumes everything and reflects the builder
        try:
            sliced, rest = SuperBox.from_slice(raw)
        except JumbfError as e:
            return fail("slice parse of built tree raised " + e.code, ctx)
        if len(rest) != 0 or len(sliced.original) != len(raw):
            return fail("slice parse consumes exactly one box", ctx)
        if not matches_builder(sliced, sb):
            return fail("slice tree matches builder", ctx)

        # (3) Streaming parse yields the same tree
        depth = tree_depth(sb)
        try:
            streamed = SuperBox.from_reader(io.BytesIO(raw), max_depth=depth)
        except JumbfError as e:
            return fail("streaming parse of built tree raised " + e.code, ctx)
        if streamed != sliced:
            return fail("streaming tree equals slice tree", ctx)

        # (4) Parse then rebuild reproduces the bytes
        if rebuild(sliced).to_bytes() != raw or rebuild(streamed).to_bytes() != raw:
            return fail("rebuild round trip", ctx)

        # (5) Borrowed offsets point at the payload bytes
        if not offsets_consistent(sliced):
            return fail("offset_within_superbox", ctx)

        # (6) Depth limit is exact
        SuperBox.from_slice_with_depth_limit(raw, depth)
        if depth > 1:
            try:
                SuperBox.from_slice_with_depth_limit(raw, depth - 1)
                return fail("depth limit below tree depth accepted", ctx)
            except RecursionLimitError:
                pass

    print(f"OK: invariants passed for TRIALS={TRIALS} seed={SEED}")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
