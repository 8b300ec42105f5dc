"""
Text processing for the intent classifier.

Turns raw utterances into normalized, stop-word filtered, lightly stemmed
tokens and maps them onto a bounded vocabulary as term-frequency vectors.
The same heuristics run at training and inference time, so their exact
behaviour matters more than linguistic accuracy.
"""

from collections import Counter
from dataclasses import dataclass, field
import hashlib
import json
import re
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from intent_engine.utils.exceptions import ValidationException
from intent_engine.utils.logger import get_logger

logger = get_logger(__name__)

NUMBER_TOKEN = "NUMBER"

STOP_WORDS = frozenset([
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "is", "are", "was", "were", "be", "been", "have", "has", "had",
    "do", "does", "did", "will", "would", "could", "should", "may", "might",
    "can", "this", "that", "these", "those", "i", "you", "he", "she", "it",
    "we", "they", "me", "him", "her", "us", "them", "my", "your", "his",
    "its", "our", "their", "what", "when", "where", "why", "how",
])

# Checked in order; the first suffix that applies wins
SUFFIXES = ("ing", "ed", "er", "est", "ly", "ion", "tion", "ness", "ment")

NUTRITION_KEYWORDS = (
    "protein", "carbs", "carbohydrates", "fat", "calories", "vitamins",
    "minerals", "fiber", "sugar", "sodium", "weight", "muscle", "diet",
    "meal", "breakfast", "lunch", "dinner", "snack", "recipe", "food",
    "nutrition", "healthy", "exercise", "fitness", "bmi", "loss", "gain",
)

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_DIGITS_RE = re.compile(r"\d+")
_WHITESPACE_RE = re.compile(r"\s+")


class Vocabulary:
    """
    Immutable stem-to-index mapping with a content fingerprint.

    The fingerprint (`version`) is attached to every feature vector built from
    this vocabulary and to every model trained on it.
    """

    def __init__(self, mapping: Optional[Mapping[str, int]] = None):
        self._index: Dict[str, int] = dict(mapping or {})
        payload = json.dumps(sorted(self._index.items()), ensure_ascii=False)
        self.version = hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, int]) -> "Vocabulary":
        """Build a vocabulary from an exported mapping, checking indices are dense."""
        indices = sorted(int(v) for v in mapping.values())
        if indices != list(range(len(indices))):
            raise ValidationException(
                "Vocabulary indices must be a permutation of 0..n-1",
                field="vocabulary",
            )
        return cls({str(word): int(index) for word, index in mapping.items()})

    def get(self, stem: str) -> Optional[int]:
        return self._index.get(stem)

    def words(self) -> List[str]:
        return sorted(self._index, key=self._index.__getitem__)

    def to_dict(self) -> Dict[str, int]:
        return dict(self._index)

    def __contains__(self, stem: str) -> bool:
        return stem in self._index

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        return f"Vocabulary(size={len(self)}, version={self.version})"


@dataclass(frozen=True)
class FeatureVector:
    """Term-frequency vector bound to the vocabulary that produced it."""
    values: np.ndarray
    vocabulary_version: str

    def __len__(self) -> int:
        return len(self.values)

    def tolist(self) -> List[float]:
        return [float(v) for v in self.values]


@dataclass(frozen=True)
class ProcessedText:
    original: str
    normalized: str
    tokens: List[str]
    stems: List[str]
    entities: List[str]
    features: FeatureVector = field(repr=False)


class TextProcessor:
    """
    Normalizes, tokenizes and vectorizes text against a bounded vocabulary.
    """

    def __init__(self, max_vocab_size: int = 10000, min_word_freq: int = 2):
        """
        Initialize the text processor.

        Args:
            max_vocab_size: Maximum number of stems kept in the vocabulary
            min_word_freq: Minimum corpus frequency for a stem to be kept
        """
        self.max_vocab_size = max_vocab_size
        self.min_word_freq = min_word_freq
        self.vocabulary = Vocabulary()

    def spawn(self) -> "TextProcessor":
        """Return an empty processor with the same settings."""
        return TextProcessor(self.max_vocab_size, self.min_word_freq)

    @staticmethod
    def normalize(text: str) -> str:
        text = text.lower()
        text = _PUNCTUATION_RE.sub(" ", text)
        text = _DIGITS_RE.sub(NUMBER_TOKEN, text)
        text = _WHITESPACE_RE.sub(" ", text)
        return text.strip()

    @staticmethod
    def tokenize(text: str) -> List[str]:
        return [token for token in text.split() if token]

    @staticmethod
    def stem(word: str) -> str:
        """Strip the first matching suffix unless that would over-shorten the word."""
        for suffix in SUFFIXES:
            if word.endswith(suffix) and len(word) > len(suffix) + 2:
                return word[:-len(suffix)]
        return word

    @staticmethod
    def filter_tokens(tokens: Iterable[str]) -> List[str]:
        return [token for token in tokens if len(token) > 2 and token not in STOP_WORDS]

    @staticmethod
    def extract_entities(text: str) -> List[str]:
        """Nutrition keywords found in the text, for analytics only."""
        lowered = text.lower()
        return [keyword for keyword in NUTRITION_KEYWORDS if keyword in lowered]

    def _stems(self, text: str) -> List[str]:
        tokens = self.filter_tokens(self.tokenize(self.normalize(text)))
        return [self.stem(token) for token in tokens]

    def build_vocabulary(self, texts: Iterable[str]) -> Vocabulary:
        """
        Rebuild the vocabulary from a corpus, replacing any previous one.

        Stems below `min_word_freq` are dropped; the rest are ranked by
        descending frequency (ties keep first-seen order) and truncated to
        `max_vocab_size`.

        Args:
            texts: Training texts

        Returns:
            The new vocabulary
        """
        frequencies: Counter = Counter()
        for text in texts:
            frequencies.update(self._stems(text))

        qualifying = [(stem, freq) for stem, freq in frequencies.items() if freq >= self.min_word_freq]
        ranked = sorted(qualifying, key=lambda item: item[1], reverse=True)[:self.max_vocab_size]

        self.vocabulary = Vocabulary({stem: index for index, (stem, _) in enumerate(ranked)})
        logger.info(
            f"Built vocabulary with {len(self.vocabulary)} words",
            extra={"vocabulary_version": self.vocabulary.version, "candidate_stems": len(frequencies)}
        )
        return self.vocabulary

    def text_to_vector(self, stems: Sequence[str]) -> FeatureVector:
        """
        Bag-of-words vector over the current vocabulary, L1 normalized.

        Only stems present in the vocabulary count toward the total; if none
        match, the zero vector is returned.
        """
        vector = np.zeros(len(self.vocabulary), dtype=float)
        for stem in stems:
            index = self.vocabulary.get(stem)
            if index is not None:
                vector[index] += 1.0

        total = vector.sum()
        if total > 0:
            vector = vector / total
        return FeatureVector(values=vector, vocabulary_version=self.vocabulary.version)

    def process_text(self, text: str) -> ProcessedText:
        normalized = self.normalize(text)
        tokens = self.filter_tokens(self.tokenize(normalized))
        stems = [self.stem(token) for token in tokens]
        return ProcessedText(
            original=text,
            normalized=normalized,
            tokens=tokens,
            stems=stems,
            entities=self.extract_entities(text),
            features=self.text_to_vector(stems),
        )

    def texts_to_matrix(self, texts: Sequence[str]) -> np.ndarray:
        """Stack feature vectors for many texts into an [n x vocabulary] matrix."""
        matrix = np.zeros((len(texts), len(self.vocabulary)), dtype=float)
        for row, text in enumerate(texts):
            matrix[row] = self.process_text(text).features.values
        return matrix

    def calculate_similarity(self, text_a: str, text_b: str) -> float:
        """Cosine similarity of two texts' feature vectors; 0 if either is empty."""
        vec_a = self.process_text(text_a).features.values
        vec_b = self.process_text(text_b).features.values
        magnitude_a = float(np.linalg.norm(vec_a))
        magnitude_b = float(np.linalg.norm(vec_b))
        if magnitude_a == 0 or magnitude_b == 0:
            return 0.0
        return float(np.dot(vec_a, vec_b) / (magnitude_a * magnitude_b))

    @property
    def vocabulary_size(self) -> int:
        return len(self.vocabulary)

    @property
    def vocabulary_version(self) -> str:
        return self.vocabulary.version

    def get_vocabulary(self) -> List[str]:
        return self.vocabulary.words()

    def export_vocabulary(self) -> Dict[str, int]:
        return self.vocabulary.to_dict()

    def import_vocabulary(self, mapping: Mapping[str, int]) -> None:
        self.vocabulary = Vocabulary.from_mapping(mapping)
