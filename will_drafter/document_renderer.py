"""
Document Renderer Module

Turns a draft into the text of the will. Rendering is a pure function of
the draft and the signing date: no lookups, no clock reads when a date is
given, and no exceptions for partially completed drafts (missing values
render as bracketed placeholders so the document can be previewed at any
step).

The document is a list of numbered sections made of content blocks, the
same structure consumed by the plain-text template and the PDF generator.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from jinja2 import Environment, PackageLoader

from will_drafter.context_builder import WillContext, ExecutorPerson, build_context
from will_drafter.reference_resolver import resolve_asset_name, resolve_beneficiary_name
from will_drafter.utils import ordinal, parse_date


TESTATOR_PLACEHOLDER = '[Testator Name]'
PLACE_PLACEHOLDER = '[City, State]'
AGE_UNKNOWN = 'N/A'

DECLARATION_TEXT = (
    'I declare that I am making this Will voluntarily and without any coercion or '
    'undue influence. I am of legal age to make a will and am fully aware of the '
    'nature and extent of my property and the disposition I am making thereof.'
)

DISPOSITION_INTRO = 'I direct my Executor to distribute my assets as follows:'
DISPOSITION_HEADER = ['Asset Description', 'Beneficiary', 'Share']

SIGNATURE_LINE = '________________________'


@dataclass
class ContentBlock:
    """A block of content within a section."""
    type: str  # 'paragraph', 'table', 'signature_block'
    content: Any
    style: str = 'normal'


@dataclass
class DocumentSection:
    """A numbered section of the will."""
    id: str
    number: str
    title: str
    content_blocks: List[ContentBlock] = field(default_factory=list)

    @property
    def heading(self) -> str:
        return f'{self.number}. {self.title}'


@dataclass
class WillDocument:
    """The rendered will."""
    testator_name: str
    age: str
    signing_place: str
    signing_date: str
    preamble: str
    sections: List[DocumentSection]
    attestation: str
    testator_signature: Dict[str, str]
    witness_statement: str
    witnesses: List[Dict[str, str]]
    version: Optional[int] = None

    @property
    def title_lines(self) -> List[str]:
        return ['Last Will and Testament', 'of', self.testator_name]

    def section(self, section_id: str) -> Optional[DocumentSection]:
        for item in self.sections:
            if item.id == section_id:
                return item
        return None

    @property
    def disposition_rows(self) -> List[List[str]]:
        """Table body of the disposition section, or [] when it is omitted."""
        disposition = self.section('disposition')
        if disposition is None:
            return []
        for block in disposition.content_blocks:
            if block.type == 'table':
                return block.content['rows']
        return []

    def to_text(self) -> str:
        """Render the document as plain text."""
        return jinja_env.get_template('will_document.txt.j2').render(document=self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title_lines,
            'testatorName': self.testator_name,
            'age': self.age,
            'signingPlace': self.signing_place,
            'signingDate': self.signing_date,
            'preamble': self.preamble,
            'sections': [
                {
                    'id': s.id,
                    'heading': s.heading,
                    'blocks': [{'type': b.type, 'content': b.content} for b in s.content_blocks],
                }
                for s in self.sections
            ],
            'attestation': self.attestation,
            'testatorSignature': self.testator_signature,
            'witnessStatement': self.witness_statement,
            'witnesses': self.witnesses,
            'version': self.version,
        }


# Initialize Jinja environment
jinja_env = Environment(
    loader=PackageLoader('will_drafter', 'templates'),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True
)


def calculate_age(dob: Any, today: Optional[date] = None) -> str:
    """
    Years between the birth year and the current year.

    Accepts a date, a datetime, an ISO string or an object with a
    to_date() accessor. Anything unusable gives 'N/A'.
    """
    try:
        born = parse_date(dob)
    except Exception:
        # Stored timestamp wrappers may fail in their own ways
        return AGE_UNKNOWN
    if born is None:
        return AGE_UNKNOWN
    today = today or date.today()
    return str(today.year - born.year)


def format_share(percentage: Optional[float]) -> str:
    """60.0 -> '60%', 33.5 -> '33.5%'."""
    if percentage is None:
        return '0%'
    return f'{percentage:g}%'


def format_signing_date(today: date) -> str:
    """'5th day of March, 2026' style date for the attestation clause."""
    return f"{ordinal(today.day)} day of {today.strftime('%B, %Y')}"


def _render_preamble(context: WillContext, age: str) -> str:
    info = context.personal_info
    return (
        f'I, {info.full_name}, son/daughter/wife of {info.father_husband_name}, '
        f'aged about {age} years, residing at {info.address}, being of sound mind and '
        f'memory, do hereby make, publish and declare this to be my Last Will and '
        f'Testament, revoking all former wills and codicils heretofore made by me.'
    )


def _render_executor(context: WillContext) -> Optional[DocumentSection]:
    if not context.has_executor:
        return None

    primary: ExecutorPerson = context.executor.primary_executor
    blocks = [ContentBlock(
        type='paragraph',
        content=(
            f'I hereby appoint {primary.full_name}, residing at {primary.address}, '
            f'as the sole Executor of this Will.'
        )
    )]

    if context.has_second_executor:
        second = context.executor.second_executor
        blocks.append(ContentBlock(
            type='paragraph',
            content=(
                f'In the event that my primary Executor is unable or unwilling to serve, '
                f'I appoint {second.full_name}, residing at {second.address}, '
                f'as the alternate Executor.'
            )
        ))

    return DocumentSection(id='executor', number='II', title='Appointment of Executor',
                           content_blocks=blocks)


def _render_disposition(context: WillContext) -> Optional[DocumentSection]:
    if not context.has_disposition:
        return None

    rows = [
        [
            resolve_asset_name(allocation.asset_id, context.assets),
            resolve_beneficiary_name(
                allocation.beneficiary_id, context.beneficiaries, context.family_details
            ),
            format_share(allocation.percentage),
        ]
        for allocation in context.allocations
    ]

    return DocumentSection(
        id='disposition',
        number='III',
        title='Disposition of Property',
        content_blocks=[
            ContentBlock(type='paragraph', content=DISPOSITION_INTRO),
            ContentBlock(type='table', content={'header': DISPOSITION_HEADER, 'rows': rows}),
        ]
    )


def _render_special_instructions(context: WillContext) -> Optional[DocumentSection]:
    if not context.has_special_instructions:
        return None
    return DocumentSection(
        id='special_instructions',
        number='IV',
        title='Special Instructions',
        content_blocks=[ContentBlock(
            type='paragraph', content=context.executor.special_instructions, style='preformatted'
        )]
    )


def render(draft: Dict[str, Any], today: Optional[date] = None) -> WillDocument:
    """
    Render a draft into a WillDocument.

    Args:
        draft: Draft dictionary (may be partially filled)
        today: Signing date; defaults to the current date

    Returns:
        WillDocument
    """
    today = today or date.today()
    context = build_context(draft)
    info = context.personal_info
    age = calculate_age(info.dob, today)

    executor = context.executor
    signing_place = f'{executor.city}, {executor.state}' if context.has_signing_place else PLACE_PLACEHOLDER
    signing_date = format_signing_date(today)

    sections = [DocumentSection(
        id='declaration',
        number='I',
        title='Declaration',
        content_blocks=[ContentBlock(type='paragraph', content=DECLARATION_TEXT)]
    )]
    for renderer in (_render_executor, _render_disposition, _render_special_instructions):
        section = renderer(context)
        if section is not None:
            sections.append(section)

    return WillDocument(
        testator_name=info.full_name or TESTATOR_PLACEHOLDER,
        age=age,
        signing_place=signing_place,
        signing_date=signing_date,
        preamble=_render_preamble(context, age),
        sections=sections,
        attestation=(
            f'IN WITNESS WHEREOF, I have hereunto set my hand to this, my Last Will and '
            f'Testament, at {signing_place} on this {signing_date}.'
        ),
        testator_signature={'label': '(Signature of Testator)', 'name': info.full_name},
        witness_statement=(
            f'The foregoing instrument was signed, published, and declared by the Testator, '
            f'{info.full_name}, as their Last Will and Testament in our presence, who, at their '
            f'request and in their presence, and in the presence of each other, have hereunto '
            f'subscribed our names as witnesses.'
        ),
        witnesses=[
            {
                'label': f'(Signature of Witness {n})',
                'name': f'Name: {SIGNATURE_LINE}',
                'address': f'Address: {SIGNATURE_LINE}',
            }
            for n in (1, 2)
        ],
        version=context.version
    )
