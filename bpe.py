import os
from collections import defaultdict
from functools import lru_cache
from multiprocessing import Pool
from typing import BinaryIO, Iterable, Optional

import regex as re
from tqdm.auto import tqdm


# GPT-2 pre-tokenization pattern
RE_PATTERN = r"""'(?:[sdmt]|ll|ve|re)| ?\p{L}+| ?\p{N}+| ?[^\s\p{L}\p{N}]+|\s+(?!\S)|\s+"""

PreTokens = dict[tuple[bytes, ...], int]


def _special_token_pattern(special_tokens: Iterable[str], capture: bool) -> Optional[str]:
    # longest first, so that overlapping special tokens match greedily
    tokens = sorted(special_tokens, key=len, reverse=True)
    if not tokens:
        return None
    pattern = "|".join(re.escape(tok) for tok in tokens)
    return f"({pattern})" if capture else pattern


def split_on_special_tokens(text: str, special_tokens: Iterable[str]) -> list[str]:
    """
    Remove special tokens in the text, returning the chunks between them.
    """
    pattern = _special_token_pattern(special_tokens, capture=False)
    if pattern is None:
        return [text]
    return re.split(pattern, text)


def pretokenize(text: str, special_tokens: Iterable[str]=()) -> PreTokens:
    freq_table: PreTokens = defaultdict(int)
    for chunk in split_on_special_tokens(text, special_tokens):
        for match in re.finditer(RE_PATTERN, chunk):
            key = match.group().encode("utf-8", errors="surrogatepass")
            freq_table[tuple(bytes([b]) for b in key)] += 1
    return dict(freq_table)


def find_chunk_boundaries(
    file: BinaryIO,
    desired_num_chunks: int,
    split_special_token: bytes,
) -> list[int]:
    """
    Byte offsets splitting the file into chunks that start at `split_special_token`,
    so each chunk can be pre-tokenized independently.
    May return fewer chunks than requested if boundaries collapse onto the same token.
    """
    assert isinstance(split_special_token, bytes), "Must represent special token as a bytestring"
    assert desired_num_chunks >= 1, "need at least one chunk"

    file.seek(0, os.SEEK_END)
    file_size = file.tell()
    file.seek(0)

    chunk_size = file_size // desired_num_chunks
    boundaries = [i * chunk_size for i in range(desired_num_chunks + 1)]
    boundaries[-1] = file_size

    read_ahead = 4096
    for bi in range(1, len(boundaries) - 1):
        position = boundaries[bi]
        file.seek(position)
        while True:
            block = file.read(read_ahead)
            if block == b"":
                boundaries[bi] = file_size
                break
            found_at = block.find(split_special_token)
            if found_at != -1:
                boundaries[bi] = position + found_at
                break
            # keep a token-sized overlap so a token straddling two blocks is still found
            position += max(len(block) - len(split_special_token) + 1, 1)
            file.seek(position)

    return sorted(set(boundaries))


def _pretokenize_worker(args) -> PreTokens:
    start, end, path, special_tokens = args
    with open(path, "rb") as f:
        f.seek(start)
        chunk = f.read(end - start)
    return pretokenize(chunk.decode("utf-8", errors="replace"), special_tokens)


def pretokenize_file(path: str, special_tokens: list[str], num_processes: int=8) -> PreTokens:
    """
    Parallel pretokenize over chunks of the file aligned on the first special token.
    Without special tokens the file is handled as a single chunk.
    """
    print(f"Starting pretokenization of {path}")
    if special_tokens:
        with open(path, "rb") as f:
            boundaries = find_chunk_boundaries(f, num_processes, special_tokens[0].encode("utf-8"))
    else:
        boundaries = [0, os.path.getsize(path)]

    worker_args = [(start, end, path, special_tokens) for start, end in zip(boundaries[:-1], boundaries[1:])]
    if not worker_args:
        return {}
    with Pool(processes=min(num_processes, len(worker_args))) as pool:
        freq_tables = pool.map(_pretokenize_worker, worker_args)

    merged: PreTokens = defaultdict(int)
    for freq_table in tqdm(freq_tables, desc="Merging pretoken counts"):
        for k, v in freq_table.items():
            merged[k] += v

    print(f"Pretokenization done. Got {len(merged)} distinct pretokens.")
    return dict(merged)


def _merge_word(word: tuple[bytes, ...], pair: tuple[bytes, bytes]) -> tuple[bytes, ...]:
    merged = []
    i = 0
    while i < len(word):
        if i < len(word) - 1 and (word[i], word[i+1]) == pair:
            merged.append(word[i] + word[i+1])
            i += 2
        else:
            merged.append(word[i])
            i += 1
    return tuple(merged)


def train_bpe(
    pretokens: PreTokens,
    vocab_size: int,
    special_tokens: list[str],
    progress: bool=False,
) -> tuple[dict[int, bytes], list[tuple[bytes, bytes]]]:
    """
    Learns merges from pre-token counts.
    The most frequent adjacent pair is merged first; ties go to the lexicographically greatest pair.
    """
    if vocab_size < 256 + len(special_tokens):
        raise ValueError(f"vocab_size must be at least {256 + len(special_tokens)}, got {vocab_size}")

    vocab: dict[int, bytes] = {i: bytes([i]) for i in range(256)}
    merges: list[tuple[bytes, bytes]] = []
    words = dict(pretokens)

    num_merges = vocab_size - len(special_tokens) - 256
    for _ in tqdm(range(num_merges), desc="Merging pairs", disable=not progress):
        pair_counts: dict[tuple[bytes, bytes], int] = defaultdict(int)
        for word, count in words.items():
            for pair in zip(word[:-1], word[1:]):
                pair_counts[pair] += count

        # nothing left to merge
        if not pair_counts:
            break

        best_pair = max(pair_counts.items(), key=lambda kv: (kv[1], kv[0]))[0]
        vocab[len(vocab)] = best_pair[0] + best_pair[1]
        merges.append(best_pair)

        updated: PreTokens = defaultdict(int)
        for word, count in words.items():
            updated[_merge_word(word, best_pair)] += count
        words = updated

    for tok in special_tokens:
        vocab[len(vocab)] = tok.encode("utf-8")

    return vocab, merges


class Tokenizer:
    def __init__(self, vocab: dict[int, bytes], merges: list[tuple[bytes, bytes]], special_tokens: Optional[list[str]]=None, cache_size: int=2**14):
        self.vocab = vocab
        self.merges = merges
        self.special_tokens = list(special_tokens or [])

        self.token_ids = {v: k for k, v in vocab.items()}
        self.merge_ranks = {pair: rank for rank, pair in enumerate(merges)}
        for tok in self.special_tokens:
            if tok.encode("utf-8") not in self.token_ids:
                raise ValueError(f"special token {tok!r} is not in the vocabulary")
        # bounded per-instance cache of pre-token -> ids
        self._encode_pretoken = lru_cache(maxsize=cache_size)(self._merge_pretoken)

    @classmethod
    def train(cls, text: str, vocab_size: int, special_tokens: Optional[list[str]]=None, progress: bool=False) -> "Tokenizer":
        special_tokens = list(special_tokens or [])
        vocab, merges = train_bpe(pretokenize(text, special_tokens), vocab_size, special_tokens, progress)
        return cls(vocab, merges, special_tokens)

    def _merge_pretoken(self, pretoken: bytes) -> tuple[int, ...]:
        word = [bytes([b]) for b in pretoken]
        while len(word) > 1:
            ranked = [
                (self.merge_ranks[pair], i)
                for i, pair in enumerate(zip(word[:-1], word[1:]))
                if pair in self.merge_ranks
            ]
            if not ranked:
                break
            _, i = min(ranked)
            word[i:i+2] = [word[i] + word[i+1]]

        return tuple(self.token_ids[piece] for piece in word)

    def encode(self, text: str) -> list[int]:
        pattern = _special_token_pattern(self.special_tokens, capture=True)
        parts = [text] if pattern is None else re.split(pattern, text)

        ids: list[int] = []
        for part in parts:
            if part in self.special_tokens:
                ids.append(self.token_ids[part.encode("utf-8")])
                continue
            for match in re.finditer(RE_PATTERN, part):
                ids.extend(self._encode_pretoken(match.group().encode("utf-8", errors="surrogatepass")))
        return ids

    def decode(self, ids: Iterable[int]) -> str:
        return b"".join(self.vocab[i] for i in ids).decode("utf-8", errors="replace")
