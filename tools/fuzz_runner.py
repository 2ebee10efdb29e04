#!/usr/bin/env python3
# tools/fuzz_runner.py
#
# Differential fuzzing (slice parser vs streaming parser).
#
# Generates three fuzz categories:
#   A) random VALID trees built with SuperBoxBuilder
#   B) valid trees with random byte flips, truncation, or trailing garbage
#   C) valid trees with a box size field rewritten (0, 1..7, over/under-long)
#
# For every input the two parsers must agree: both succeed with equal
# trees, or both raise JumbfError.  Any other exception, or a disagreement,
# prints a minimal repro payload and exits non-zero.

import io, os, sys, json, random, struct
from typing import Any, Dict, List, Tuple

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT)

from jumbf import (
    DEFAULT_MAX_DEPTH,
    DataBoxBuilder,
    JumbfError,
    SuperBox,
    SuperBoxBuilder,
)

SEED = int(os.environ.get("JUMBF_SEED", "4242"))
ROUNDS = int(os.environ.get("JUMBF_FUZZ_ROUNDS", "5000"))
MAX_GEN_DEPTH = int(os.environ.get("JUMBF_GEN_MAX_DEPTH", "4"))

random.seed(SEED)

def run_slice(raw: bytes) -> Dict[str, Any]:
    try:
        sbox, rest = SuperBox.from_slice_with_depth_limit(raw, DEFAULT_MAX_DEPTH)
    except JumbfError as e:
        return {"err": e.code}
    return {"tree": sbox, "consumed": len(raw) - len(rest)}

def run_reader(raw: bytes) -> Dict[str, Any]:
    stream = io.BytesIO(raw)
    try:
        sbox = SuperBox.from_reader(stream, DEFAULT_MAX_DEPTH)
    except JumbfError as e:
        return {"err": e.code}
    return {"tree": sbox, "consumed": stream.tell()}

def mismatch(label: str, a: Dict[str, Any], b: Dict[str, Any], ctx: Dict[str, Any]) -> None:
    print("MISMATCH:", label)
    print("SLICE :", a)
    print("READER:", b)
    print("CTX:", json.dumps(ctx, ensure_ascii=False)[:4000])
    raise SystemExit(1)

def compare(label: str, raw: bytes, ctx: Dict[str, Any]) -> None:
    ctx = dict(ctx, input_hex=raw.hex())
    a = run_slice(raw)
    b = run_reader(raw)
    if ("err" in a) != ("err" in b):
        mismatch(label, a, b, ctx)
    if "tree" in a and (a["tree"] != b["tree"] or a["consumed"] != b["consumed"]):
        mismatch(label, a, b, ctx)

# --- generators ---

def rand_ascii(nmax: int) -> str:
    n = random.randint(0, nmax)
    return "".join(chr(random.randint(0x20, 0x7E)) for _ in range(n))

def rand_bytes(nmax: int) -> bytes:
    return bytes(random.getrandbits(8) for _ in range(random.randint(0, nmax)))

def rand_tree(depth: int = 1) -> SuperBoxBuilder:
    sb = SuperBoxBuilder(
        bytes(random.getrandbits(8) for _ in range(16)),
        label=rand_ascii(12) if random.random() < 0.7 else None,
        requestable=random.random() < 0.5,
        id=random.getrandbits(32) if random.random() < 0.2 else None,
        hash=bytes(32) if random.random() < 0.1 else None,
        private=rand_bytes(8) if random.random() < 0.1 else None,
    )
    for _ in range(random.randint(0, 4)):
        if depth < MAX_GEN_DEPTH and random.random() < 0.3:
            sb.add_child_box(rand_tree(depth + 1))
        else:
            sb.add_child_box(DataBoxBuilder(random.choice(["json", "cbor", "abcd"]), rand_bytes(24)))
    return sb

def box_offsets(raw: bytes) -> List[Tuple[int, int]]:
    # (offset, size) of every well-formed compact box header in a built tree.
    out = []
    def walk(off: int, end: int) -> None:
        while off + 8 <= end:
            size = struct.unpack_from(">I", raw, off)[0]
            if size < 8 or off + size > end:
                return
            out.append((off, size))
            if raw[off + 4:off + 8] == b"jumb":
                walk(off + 8, off + size)
            off += size
    walk(0, len(raw))
    return out

def mutate_bytes(raw: bytes) -> bytes:
    r = random.random()
    if r < 0.4 and raw:
        buf = bytearray(raw)
        for _ in range(random.randint(1, 4)):
            buf[random.randrange(len(buf))] = random.getrandbits(8)
        return bytes(buf)
    if r < 0.7:
        return raw[:random.randint(0, len(raw))]
    return raw + rand_bytes(16)

def mutate_size(raw: bytes) -> bytes:
    off, size = random.choice(box_offsets(raw))
    choices = [0, random.randint(1, 7), size - 1, size + 1, size + random.randint(2, 64)]
    new = max(0, random.choice(choices))
    buf = bytearray(raw)
    struct.pack_into(">I", buf, off, new)
    return bytes(buf)

def main() -> int:
    for i in range(ROUNDS):
        raw = rand_tree().to_bytes()
        r = random.random()

        # A) valid trees
        if r < 0.25:
            compare("A valid", raw, {"round": i})
            continue

        # B) byte-level mutation
        if r < 0.65:
            compare("B mutated", mutate_bytes(raw), {"round": i})
            continue

        # C) size field rewrite
        compare("C size", mutate_size(raw), {"round": i})

    print(f"OK: fuzz rounds={ROUNDS} seed={SEED} (no mismatches)")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
