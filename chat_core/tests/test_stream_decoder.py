import asyncio

from chat_core.providers.streaming import StreamDecoder


def _decode_all(chunks):
    decoder = StreamDecoder()

    async def source():
        for chunk in chunks:
            yield chunk

    async def run():
        return [s async for s in decoder.decode(source())]

    return asyncio.run(run()), decoder.text


def test_two_deltas_yield_two_cumulative_snapshots():
    chunks = [
        'data: {"choices":[{"delta":{"content":"Hel"}}]}\n',
        'data: {"choices":[{"delta":{"content":"lo"}}]}\n',
        "data: [DONE]\n",
    ]
    snapshots, final = _decode_all(chunks)
    assert snapshots == ["Hel", "Hello"]
    assert final == "Hello"


def test_line_split_across_chunks_is_reassembled():
    chunks = [
        b'data: {"choices":[{"del',
        b'ta":{"content":"ab"}}]}\ndata: {"choices":[{"delta":{"content":"c"}}]}',
        b"\n",
    ]
    snapshots, final = _decode_all(chunks)
    assert snapshots == ["ab", "abc"]
    assert final == "abc"


def test_multibyte_character_split_between_chunks():
    raw = 'data: {"choices":[{"delta":{"content":"你好"}}]}\n'.encode("utf-8")
    cut = raw.index("你".encode("utf-8")) + 1
    snapshots, final = _decode_all([raw[:cut], raw[cut:]])
    assert snapshots == ["你好"]
    assert final == "你好"


def test_malformed_lines_are_skipped_without_aborting():
    chunks = [
        'data: {"choices":[{"delta":{"content":"a"}}]}\n',
        "data: {not json\n",
        ": keep-alive comment\n",
        'data: {"choices":[]}\n',
        'data: {"choices":[{"delta":{"content":"b"}}]}\n',
    ]
    snapshots, final = _decode_all(chunks)
    assert snapshots == ["a", "ab"]
    assert final == "ab"


def test_empty_stream_gives_empty_response():
    snapshots, final = _decode_all([])
    assert snapshots == []
    assert final == ""


def test_last_line_without_newline_is_flushed_at_end():
    snapshots, final = _decode_all(['data: {"choices":[{"delta":{"content":"tail"}}]}'])
    assert snapshots == ["tail"]
    assert final == "tail"


def test_snapshots_are_trimmed_and_never_shrink():
    decoder = StreamDecoder()
    snapshots = []
    for piece in ["  Hi", " ", "\n", "there  "]:
        line = 'data: {"choices":[{"delta":{"content":%s}}]}\n' % repr(piece).replace("'", '"')
        snapshots.extend(decoder.feed(line))
    snapshots.extend(decoder.finish())
    assert snapshots[0] == "Hi"
    assert snapshots[-1] == "Hi \nthere"
    lengths = [len(s) for s in snapshots]
    assert lengths == sorted(lengths)
