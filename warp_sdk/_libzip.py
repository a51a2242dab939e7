"""
FastLZ level-1 compression in the stream format read by solady's
``LibZip.flzDecompress``.

Session enable payloads are compressed with this before being sent on
chain; the on-chain decoder only understands this exact token layout.
"""

_HASH_SIZE = 8192
_MAX_DISTANCE = 8192


def _hash(x: int) -> int:
    return (((2654435769 * x) & 0xFFFFFFFF) >> 19) & (_HASH_SIZE - 1)


def flz_compress(data: bytes) -> bytes:
    """
    Compress ``data``.

    Args:
        data: Raw bytes

    Returns:
        Compressed stream
    """
    ib = bytes(data)
    b = len(ib) - 4
    ht = [0] * _HASH_SIZE
    ob = bytearray()
    a = 0
    i = 2

    def u24(p: int) -> int:
        return ib[p] | (ib[p + 1] << 8) | (ib[p + 2] << 16)

    def literals(r: int, s: int) -> None:
        while r >= 32:
            ob.append(31)
            ob.extend(ib[s:s + 32])
            s += 32
            r -= 32
        if r:
            ob.append(r - 1)
            ob.extend(ib[s:s + r])

    while i < b - 9:
        # find the next position whose 3-byte prefix was seen within range
        while True:
            s = u24(i)
            h = _hash(s)
            r = ht[h]
            ht[h] = i
            d = i - r
            c = u24(r) if d < _MAX_DISTANCE else 0x1000000
            if i >= b - 9:
                break
            i += 1
            if s == c:
                break
        if i >= b - 9:
            break

        i -= 1
        if i > a:
            literals(i - a, a)

        l = 0
        p = r + 3
        q = i + 3
        e = b - q
        while l < e:
            if ib[p + l] != ib[q + l]:
                e = 0
            l += 1
        i += l

        d -= 1
        while l > 262:
            ob.extend((224 + (d >> 8), 253, d & 255))
            l -= 262
        if l < 7:
            ob.extend(((l << 5) + (d >> 8), d & 255))
        else:
            ob.extend((224 + (d >> 8), l - 7, d & 255))

        ht[_hash(u24(i))] = i
        i += 1
        ht[_hash(u24(i))] = i
        i += 1
        a = i

    literals(b + 4 - a, a)
    return bytes(ob)


def flz_decompress(data: bytes) -> bytes:
    """
    Decompress a stream produced by :func:`flz_compress`.

    Raises:
        ValueError: If the stream is truncated or references data before
            the start of the output
    """
    ib = bytes(data)
    ob = bytearray()
    i = 0
    try:
        while i < len(ib):
            t = ib[i] >> 5
            if t == 0:
                run = 1 + ib[i]
                i += 1
                if i + run > len(ib):
                    raise ValueError("Truncated literal run")
                ob.extend(ib[i:i + run])
                i += run
                continue

            short = 1 if t < 7 else 0
            f = 256 * (ib[i] & 31) + ib[i + 2 - short]
            length = 2 + t if short else 9 + ib[i + 1]
            i += 3 - short
            r = len(ob) - f - 1
            if r < 0:
                raise ValueError(f"Back reference {f + 1} exceeds output length {len(ob)}")
            for _ in range(length):
                ob.append(ob[r])
                r += 1
    except IndexError:
        raise ValueError("Truncated match token")
    return bytes(ob)
