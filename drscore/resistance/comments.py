"""
Binds interpretive comments to the mutations found in a sample.

The comment text comes from the rule file, and is passed through unchanged.
"""
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List

from drscore.core.mutations import Mutation, MutationSet


class CommentType(Enum):
    MAJOR = 'Major'
    ACCESSORY = 'Accessory'
    NRTI = 'NRTI'
    NNRTI = 'NNRTI'
    OTHER = 'Other'
    DOSAGE = 'Dosage'


@dataclass(frozen=True)
class CommentRule:
    trigger: Mutation
    comment_type: CommentType
    text: str
    name: str = ''


@dataclass(frozen=True)
class BoundComment:
    rule: CommentRule
    mutation: Mutation  # as observed in the sample

    @property
    def comment_type(self) -> CommentType:
        return self.rule.comment_type

    @property
    def text(self) -> str:
        return self.rule.text

    @property
    def highlight(self) -> str:
        return self.mutation.name


class CommentBinder:
    def __init__(self, rules: Iterable[CommentRule] = ()):
        self.rules = tuple(rules)

    def bind(self, mutations: MutationSet) -> List[BoundComment]:
        return [BoundComment(rule, mutations.get(rule.trigger.gene,
                                                 rule.trigger.position))
                for rule in self.rules
                if mutations.has_shared_aa_mutation(rule.trigger)]

    def group_by_type(self,
                      mutations: MutationSet) -> Dict[CommentType, List[BoundComment]]:
        """ Group bound comments by type, in the order types are declared. """
        groups = defaultdict(list)
        for comment in self.bind(mutations):
            groups[comment.comment_type].append(comment)
        return {comment_type: groups[comment_type]
                for comment_type in CommentType
                if comment_type in groups}
