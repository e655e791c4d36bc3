"""
Rule tables for the quality gate and scorers.

Every lexical check is a `Rule` record; `run_rules` is the only code that
evaluates them. Adding a phrase means adding a row, not a branch.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence


@dataclass(frozen=True)
class Rule:
    pattern: str
    label: str
    penalty: int = 0
    literal: bool = False
    _compiled: Optional[re.Pattern] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        source = re.escape(self.pattern) if self.literal else self.pattern
        object.__setattr__(self, "_compiled", re.compile(source))

    def find_all(self, text: str) -> List[str]:
        return [m.group(0) for m in self._compiled.finditer(text or "")]


@dataclass(frozen=True)
class RuleHit:
    rule: Rule
    matches: List[str]

    @property
    def count(self) -> int:
        return len(self.matches)

    @property
    def penalty(self) -> int:
        return self.rule.penalty * self.count


def run_rules(text: str, rules: Iterable[Rule]) -> List[RuleHit]:
    """Evaluate every rule; return one hit per rule that matched at least once."""
    hits: List[RuleHit] = []
    for rule in rules:
        matches = rule.find_all(text)
        if matches:
            hits.append(RuleHit(rule, matches))
    return hits


def capped_penalty(hits: Sequence[RuleHit], cap: int) -> int:
    return min(cap, sum(h.penalty for h in hits))


def literal_rules(phrases: Iterable[str], label: str, penalty: int = 0) -> List[Rule]:
    return [Rule(p, label.format(phrase=p), penalty, literal=True) for p in phrases]


# ---------------------------------------------------------------------------
# Quality gate tables
# ---------------------------------------------------------------------------

FORBIDDEN_PHRASES = [
    # placeholders
    "〇〇",
    "●●",
    "XX",
    "xx",
    "△△",
    "□□",
    # operational register (wrong level for executives)
    "業務効率化",
    "コスト削減",
    "作業時間短縮",
    "人件費削減",
    # ceremonial flattery
    "感銘を受けました",
    "ご活躍を拝見",
    "拝察",
    "幸いです",
    # vague superlatives
    "大幅に削減",
    "多くの企業様",
    "業界トップクラス",
    "御社も例外ではない",
    "例外ではありません",
]

FORBIDDEN_PHRASE_RULES = literal_rules(FORBIDDEN_PHRASES, "禁止ワード「{phrase}」が含まれています")

FORBIDDEN_PATTERN_RULES = [
    Rule(r"(変化|移り変わり)の(激しい|速い)(時代|昨今|現代)", "「変化の激しい時代」型の定型文が含まれています"),
    Rule(r"昨今の.{0,10}(情勢|環境)(において|の中)", "「昨今の環境において」型の定型文が含まれています"),
    Rule(r"(業界|国内|世界)(No\.?\s*1|ナンバーワン|唯一|最大手)", "根拠のない最上級表現が含まれています"),
    Rule(r"(圧倒的な|唯一無二の|最高水準の)", "根拠のない最上級表現が含まれています"),
]

PLACEHOLDER_RULES = [
    Rule(r"【要確認[:：].*?】", "プレースホルダー"),
    Rule(r"\[要確認[:：].*?\]", "プレースホルダー"),
]

COMPLETE_MODE_RULES = [
    Rule(r"かもしれません", "完成モードで曖昧な表現「{match}」が使われています"),
    Rule(r"と思われます", "完成モードで曖昧な表現「{match}」が使われています"),
    Rule(r"おそらく", "完成モードで曖昧な表現「{match}」が使われています"),
    Rule(r"課題があります", "完成モードで断定的な診断「{match}」が使われています"),
    Rule(r"(問題|課題)を抱えて(いらっしゃい|おり|い)ます", "完成モードで断定的な診断「{match}」が使われています"),
    Rule(r"できていない(のが現状|状況)", "完成モードで断定的な診断「{match}」が使われています"),
]

CITATION_LEAK_PATTERNS = [
    r"\[S?\d+\]",
    r"【出典[^】]*】",
    r"[（(]出典[:：][^）)]*[）)]",
    r"出典[:：]",
    r"参照元",
]

HEDGE_PATTERNS = [r"かもしれません", r"と思われます", r"おそらく", r"たぶん", r"多分"]

CONSULTING_MODE_RULES = [
    *(Rule(p, "コンサルティングモードで出典表記「{match}」が本文に残っています") for p in CITATION_LEAK_PATTERNS),
    *(Rule(p, "コンサルティングモードで曖昧な表現「{match}」が使われています") for p in HEDGE_PATTERNS),
]

NUMERIC_CLAIM_RULE = Rule(
    r"[\d０-９]+(?:[.,][\d０-９]+)*\s*(?:%|％|万|億|件|社|名|時間|日|週|月|年)",
    "証拠ポイントがないのに具体的な数値「{match}」が使用されています（架空の数字の疑い）",
)

NEWS_ASSERTION_RULES = [
    Rule(r"先日.{0,30}発表", "最新ニュース情報がないのにニュースを断定的に引用しています"),
    Rule(r"最近.{0,30}報道", "最新ニュース情報がないのにニュースを断定的に引用しています"),
    Rule(r"(報道|ニュース|記事|新聞|プレスリリース|発表|リリース)(など|等)?によると", "最新ニュース情報がないのにニュースを断定的に引用しています"),
    Rule(r"と報じられ", "最新ニュース情報がないのにニュースを断定的に引用しています"),
    Rule(r"が明らかに", "最新ニュース情報がないのにニュースを断定的に引用しています"),
]

# Sentences ending in a bare noun stem ("...を実現。") read like ad copy.
TELEGRAPHIC_SENTENCE_RE = re.compile(
    r"(実現|推進|強化|支援|提供|対応|検討|導入|向上|削減|構築|改善|変革|最適化|効率化|可視化)[。．.]$"
)
TELEGRAPHIC_MIN_SENTENCES = 2

# Claims that only fit one event position.
POSITION_CLAIM_RULES = {
    "sponsor": [Rule(r"協賛(企業|社)?として", "協賛")],
    "speaker": [Rule(r"(登壇|講演)(いた)?します|(登壇|講演)させていただ", "登壇")],
    "case_provider": [Rule(r"事例(を)?(ご)?(紹介|提供)(いた)?します|事例提供(企業|社)として", "事例提供")],
}

# ---------------------------------------------------------------------------
# Standard scoring tables
# ---------------------------------------------------------------------------

PROPER_NOUN_RE = re.compile(r"「[^」]{2,30}」|株式会社|有限会社|[A-Z][A-Za-z0-9&\-]{2,}")

EMPATHY_RULES = [
    Rule(r"貴社|御社", "相手企業への言及"),
    Rule(r"ご担当|ご責任者|皆様", "相手の立場への言及"),
    Rule(r"ではないでしょうか|と推察|とお察し|かと存じます", "相手の状況への仮説"),
    Rule(r"課題|お悩み|懸念|ご負担", "相手の課題への言及"),
    Rule(r"(取り組|注力|推進)(み|まれ|され)", "相手の取り組みへの言及"),
]
EMPATHY_POINTS = 5

CTA_RULES = [
    Rule(r"\d+分(だけ|ほど|程度)", "短時間の面談提案"),
    Rule(r"(いただけ|頂け)(ない|ません)でしょうか", "依頼表現"),
    Rule(r"(お送り|ご案内|ご紹介)して(も)?よろしいでしょうか", "資料送付の提案"),
    Rule(r"情報交換", "情報交換の提案"),
    Rule(r"(ご返信|ご連絡)(いただけますと|をお待ち)", "返信依頼"),
]
CTA_POINTS = 10

STRUCTURE_ELEMENT_PATTERNS = {
    "timing": r"このタイミング|今回|なぜ今|今だからこそ|を拝見し|を受け|を機に|に際し",
    "problem": r"課題|リスク|懸念|負荷|ボトルネック|お悩み",
    "solution": r"支援|ご提案|ソリューション|サービス|仕組み|解決",
    "evidence": r"実績|事例|導入企業|導入いただ|ご利用",
    "offer": "|".join(r.pattern for r in CTA_RULES),
}
STRUCTURE_POINTS = 4

NG_RULES = [
    *literal_rules(
        ["感銘を受けました", "ご活躍を拝見", "貴社のますますのご発展", "ご盛栄のこととお慶び"],
        "儀礼的な表現「{phrase}」",
        penalty=4,
    ),
    Rule(r"必ず|間違いなく|絶対に|確実に", "断定しすぎの表現「{match}」", penalty=3),
    *literal_rules(
        ["業務効率化", "コスト削減", "作業時間", "人件費", "手作業"],
        "現場目線の表現「{phrase}」",
        penalty=2,
    ),
    Rule(r"課題があります|(問題|課題)を抱えて(いらっしゃい|おり|い)ます", "根拠のない診断「{match}」", penalty=3),
    Rule(r"(様|殿)\s*(様|殿)|各位様|御中\s*様", "重複した敬称「{match}」", penalty=3),
]
NG_TELEGRAPHIC_PENALTY = 2

# Boilerplate that caps the score unless the user asked for it verbatim.
TEMPLATE_PHRASES = [
    "突然のご連絡失礼いたします",
    "貴社のますますのご発展",
    "時下ますますご清栄",
    "平素は格別のお引き立て",
    "お忙しいところ恐縮ですが",
]

CITATION_LEAK_RE = re.compile("|".join(CITATION_LEAK_PATTERNS))

SCORE_CAP = 75

# ---------------------------------------------------------------------------
# Event / consulting penalty tables
# ---------------------------------------------------------------------------

EVENT_CTA_KINDS = {
    "attend": r"ご参加|お申し込み|お申込み|ご来場|ご登録",
    "meeting": r"面談|お打ち合わせ|商談|ご訪問|お時間をいただ",
}

EVENT_RULES = {
    "unconfirmed_speaker": [
        Rule(r"(登壇者|講演者|スピーカー)(は)?(未定|調整中)", "登壇者が未確定と記載されています", penalty=10),
        Rule(r"【要確認[:：][^】]*(登壇|講演)[^】]*】", "登壇者に確認待ちのマーカーが残っています", penalty=10),
        Rule(r"[（(]仮[）)]", "仮表記が残っています", penalty=10),
    ],
    "greeting_mismatch": [
        Rule(r"いつもお世話になっております", "初回連絡なのに既存取引先向けの挨拶です", penalty=10),
        Rule(r"平素より|平素は", "初回連絡なのに既存取引先向けの挨拶です", penalty=10),
        Rule(r"先日は(ありがとう|ご挨拶)", "初回連絡なのに面識を前提とした挨拶です", penalty=10),
    ],
}
EVENT_DUAL_CTA_PENALTY = 15
EVENT_CONTRADICTION_PENALTY = 20
EVENT_CAPS = {
    "dual_cta": 15,
    "unconfirmed_speaker": 20,
    "greeting_mismatch": 20,
    "position_contradiction": 30,
}

DIAGNOSIS_RULES = [
    Rule(r"貴社の課題は.{0,20}(です|でしょう)", "断定的な診断「{match}」", penalty=10),
    Rule(r"(問題|課題)を抱えて(いらっしゃい|おり|い)ます", "断定的な診断「{match}」", penalty=10),
    Rule(r"できていない(のが現状|状況)", "断定的な診断「{match}」", penalty=10),
    Rule(r"(に|が)問題があります", "断定的な診断「{match}」", penalty=10),
]

CONSULTING_RULES = {
    "citation_leakage": [Rule(p, "出典表記「{match}」が本文に残っています", penalty=10) for p in CITATION_LEAK_PATTERNS],
    "hedge_words": [Rule(p, "曖昧な表現「{match}」", penalty=5) for p in HEDGE_PATTERNS],
    "diagnosis_templates": DIAGNOSIS_RULES,
    "placeholder_residue": [
        Rule(r"【要確認[:：].*?】|\[要確認[:：].*?\]", "プレースホルダー「{match}」が残っています", penalty=15),
        *literal_rules(["〇〇", "●●", "△△", "□□"], "伏せ字「{phrase}」が残っています", penalty=15),
    ],
    "salutation_redundancy": [
        Rule(r"(様|殿)\s*(様|殿)|各位様|御中\s*様", "重複した敬称「{match}」", penalty=5),
        Rule(r"拝啓[\s\S]*拝啓", "頭語が重複しています", penalty=5),
    ],
}
CONSULTING_CAPS = {
    "citation_leakage": 30,
    "hedge_words": 20,
    "diagnosis_templates": 20,
    "placeholder_residue": 30,
    "salutation_redundancy": 10,
}


def describe(hit: RuleHit) -> str:
    """Human-readable reason for a hit; `{match}` in a label is the first match."""
    return hit.rule.label.replace("{match}", hit.matches[0])
