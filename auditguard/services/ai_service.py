"""OpenRouter backed AI helpers: holistic report scoring and draft generation."""
import base64
import json
import logging
import re
import time

from flask import current_app
from openai import OpenAI

from auditguard.utils import get_ist_time

logger = logging.getLogger(__name__)

MAX_REPORT_CHARS = 12000
JSON_BLOCK = re.compile(r'\{[\s\S]*\}')


class AIConfigurationError(Exception):
    pass


WEIGHTS = {
    'personal': {
        'selfEducation': 1.5, 'spouseName': 1.5, 'spouseEducation': 1.5, 'spouseEmployment': 1.5,
        'mentionAboutKids': 1.5, 'kidsEducation': 1.5, 'kidsSchool': 1.5, 'residenceVintage': 1.5,
        'monthlyRentIfRented': 1.5, 'residenceOwnedOrRented': 1.5,
    },
    'personalUnmarried': {
        'selfEducation': 1.5, 'residenceVintage': 1.5, 'monthlyRentIfRented': 1.5, 'residenceOwnedOrRented': 1.5,
    },
    'business': {
        'businessName': 2, 'natureOfBusiness': 2, 'existenceCurrentPlace': 2, 'licensesRegistrations': 2,
        'promoterExperience': 2, 'strategicVision': 2, 'employeesSeen': 2, 'monthlyTurnover': 2,
        'clientList': 2, 'activityDuringVisit': 2, 'monthlyIncome': 2, 'seasonality': 2, 'infrastructure': 2,
    },
    'manufacturing': {
        'mfgRawMaterial': 0.5, 'mfgProcessFlow': 1, 'mfgCapacity': 0.5, 'mfgMachinery': 1,
        'mfgInventory': 0.5, 'mfgQualityControl': 0.5,
    },
    'trading': {'tradingProductRange': 1, 'tradingPurchaseCycle': 2, 'tradingWarehouse': 1},
    'service': {'svcDocumentation': 1, 'svcTechnology': 1, 'svcContracts': 1, 'svcContractBased': 1},
    'banking': {
        'primaryBankerName': 3, 'turnoverCreditedPercent': 3, 'bankingTenure': 3,
        'emisRoutedBank': 3, 'qrCodeSpotted': 3,
    },
    'networth': {
        'propertiesOwned': 2.5, 'vehiclesOwned': 2.5, 'otherInvestments': 2.5,
        'businessPlaceOwned': 2.5, 'totalNetworthAvailable': 2.5,
    },
    'existingDebt': {
        'hasExistingLoans': 2, 'loanListAvailable': 2, 'canServiceNewLoan': 2,
        'repaymentHistoryQuality': 2, 'loansSourceBankNature': 2,
    },
    'endUseHomeLoan': {'agreementValueAvailable': 3, 'advancePaidAmount': 3, 'willOccupyPostPurchase': 4},
    'endUseMortgage': {'mortgageFundsUse': 5, 'additionalUseInformation': 5},
    'referenceChecks': {'personalRefNeighbours': 4, 'businessRefBuyersSellers': 3, 'invoiceVerification': 3},
}

# response key -> stored breakdown key
PERSONAL_KEYS = {k: k for k in WEIGHTS['personal']}
BUSINESS_KEYS = {
    'businessName': 'businessName',
    'natureOfBusiness': 'natureOfBusiness',
    'existenceCurrentPlace': 'existenceCurrentPlace',
    'licensesRegistrations': 'licensesRegistrations',
    'promoterExperience': 'promoterExperienceQualifications',
    'strategicVision': 'strategicVisionClarity',
    'employeesSeen': 'employeesSeen',
    'monthlyTurnover': 'monthlyTurnover',
    'clientList': 'clientListConcentrationRisk',
    'activityDuringVisit': 'activityDuringVisit',
    'monthlyIncome': 'monthlyIncome',
    'seasonality': 'seasonality',
    'infrastructure': 'infraSupportsTurnover',
    'mfgRawMaterial': 'mfgRawMaterialSourcingStorage',
    'mfgProcessFlow': 'mfgProcessFlow',
    'mfgCapacity': 'mfgCapacityVsUtilization',
    'mfgMachinery': 'mfgMachineryMakeAutomationMaintenance',
    'mfgInventory': 'mfgInventoryFifoAging',
    'mfgQualityControl': 'mfgQualityControl',
    'tradingProductRange': 'tradingProductRangeInventoryMovement',
    'tradingPurchaseCycle': 'tradingPurchaseSalesCycle',
    'tradingWarehouse': 'tradingWarehouseStockSeen',
    'svcDocumentation': 'svcDocumentationOfDelivery',
    'svcTechnology': 'svcTechnologySystems',
    'svcContracts': 'svcClientListContractsRevenueModel',
    'svcContractBased': 'svcContractBasedOrWalkin',
}
BANKING_KEYS = {k: k for k in WEIGHTS['banking']}
NETWORTH_KEYS = {k: k for k in WEIGHTS['networth']}
DEBT_KEYS = {k: k for k in WEIGHTS['existingDebt']}
END_USE_KEYS = {
    'agreementValueAvailable': 'agreementValueAvailable',
    'advancePaidAmount': 'advancePaidCashOrBankAmount',
    'willOccupyPostPurchase': 'willOccupyPostPurchase',
    'mortgageFundsUse': 'mortgageFundsUse',
    'additionalUseInformation': 'additionalUseInformation',
}
REFERENCE_KEYS = {k: k for k in WEIGHTS['referenceChecks']}

SCORING_PROMPT = """You are an expert audit report analyzer. Read the COMPLETE report below and identify what information is ACTUALLY PRESENT.

IMPORTANT: Only mark an item as TRUE if the specific information is CLEARLY DOCUMENTED in the report. Do NOT assume or infer - only mark TRUE for explicitly stated information.

SPECIAL NETWORTH RULES:
- "noPropertiesExplicitlyMentioned": Mark TRUE if the report explicitly states that the applicant has NO movable/immovable properties, no land, no house, or similar negative statements about property ownership.
- "noVehiclesExplicitlyMentioned": Mark TRUE if the report explicitly states that the applicant has NO vehicles, no car, no bike, or similar negative statements about vehicle ownership.
- If the applicant explicitly has no properties/vehicles (as stated in report), the corresponding "propertiesOwned"/"vehiclesOwned" can still be FALSE, but we will not penalize for this.

=== AUDIT REPORT ===
{report}
=== END OF REPORT ===

Analyze the report and respond with ONLY a JSON object (no markdown):
{schema}"""


def _schema():
    def block(keys):
        return {k: 'true/false' for k in keys}

    return json.dumps({
        'businessType': 'manufacturing | trading | service | unknown',
        'loanType': 'home_loan | mortgage | unknown',
        'maritalStatus': 'married | unmarried | unknown',
        'personal': block(PERSONAL_KEYS),
        'business': block(BUSINESS_KEYS),
        'banking': block(BANKING_KEYS),
        'networth': block(list(NETWORTH_KEYS) + ['noPropertiesExplicitlyMentioned',
                                                 'noVehiclesExplicitlyMentioned']),
        'existingDebt': block(DEBT_KEYS),
        'endUse': block(END_USE_KEYS),
        'referenceChecks': block(REFERENCE_KEYS),
        'summary': '<one sentence summary>',
    }, indent=2)


def is_ai_configured():
    return bool(current_app.config.get('AI_API_KEY'))


def get_client():
    api_key = current_app.config.get('AI_API_KEY')
    if not api_key:
        raise AIConfigurationError('No OpenRouter API key configured')
    return OpenAI(api_key=api_key, base_url=current_app.config['AI_BASE_URL'])


def ai_status():
    return {
        'configured': is_ai_configured(),
        'baseUrl': current_app.config.get('AI_BASE_URL'),
        'scoringModel': current_app.config.get('AI_SCORING_MODEL'),
    }


def calculate_score(matches, weights):
    score = sum(weight for key, weight in weights.items() if matches.get(key) is True)
    return round(score * 100) / 100


def _map_matches(raw, key_map):
    return {target: bool(raw.get(source)) for source, target in key_map.items()}


def _parse_json_block(content):
    match = JSON_BLOCK.search(content or '')
    if not match:
        raise ValueError('No valid JSON in AI response')
    return json.loads(match.group(0))


def empty_comprehensive_result(message):
    return {
        'personal': 0, 'business': 0, 'banking': 0, 'networth': 0,
        'existingDebt': 0, 'endUse': 0, 'referenceChecks': 0,
        'personalMatches': _map_matches({}, PERSONAL_KEYS),
        'businessMatches': _map_matches({}, BUSINESS_KEYS),
        'bankingMatches': _map_matches({}, BANKING_KEYS),
        'networthMatches': _map_matches({}, NETWORTH_KEYS),
        'debtMatches': _map_matches({}, DEBT_KEYS),
        'endUseMatches': _map_matches({}, END_USE_KEYS),
        'referenceMatches': _map_matches({}, REFERENCE_KEYS),
        'rationale': f'AI scoring failed: {message}',
        'aiError': message,
    }


def _personal_score(matches, marital_status, lead_id):
    if marital_status == 'unmarried':
        raw = calculate_score(matches, WEIGHTS['personalUnmarried'])
        scaled = round(raw / 6 * 15 * 100) / 100
        logger.info("[AI Scoring - %s] Unmarried applicant - raw personal: %s/6, scaled: %s/15", lead_id, raw, scaled)
        return scaled
    return calculate_score(matches, WEIGHTS['personal'])


def _networth_score(matches, lead_id):
    no_properties = matches.get('noPropertiesExplicitlyMentioned') is True
    no_vehicles = matches.get('noVehiclesExplicitlyMentioned') is True
    if not (no_properties or no_vehicles):
        return min(calculate_score(matches, WEIGHTS['networth']), 10)

    weights = dict(WEIGHTS['networth'])
    max_possible = 12.5
    if no_properties:
        del weights['propertiesOwned']
        max_possible -= 2.5
    if no_vehicles:
        del weights['vehiclesOwned']
        max_possible -= 2.5
    raw = calculate_score(matches, weights)
    score = min(raw / max_possible * 10, 10) if max_possible > 0 else 0
    score = round(score * 100) / 100
    logger.info("[AI Scoring - %s] Networth adjusted: raw=%s/%s, scaled=%s/10", lead_id, raw, max_possible, score)
    return score


def _end_use_score(matches, loan_type):
    home_loan = calculate_score(matches, WEIGHTS['endUseHomeLoan'])
    mortgage = calculate_score(matches, WEIGHTS['endUseMortgage'])
    if loan_type == 'home_loan':
        score = home_loan
    elif loan_type == 'mortgage':
        score = mortgage
    else:
        score = max(home_loan, mortgage)
    return min(score, 10)


def compute_comprehensive_scores(parsed, lead_id, elapsed_ms=0):
    """Turn the model's boolean findings into weighted section scores."""
    personal_raw = parsed.get('personal') or {}
    business_raw = parsed.get('business') or {}
    banking_raw = parsed.get('banking') or {}
    networth_raw = parsed.get('networth') or {}
    debt_raw = parsed.get('existingDebt') or {}
    end_use_raw = parsed.get('endUse') or {}
    reference_raw = parsed.get('referenceChecks') or {}
    marital_status = parsed.get('maritalStatus') or 'unknown'
    business_type = parsed.get('businessType') or 'unknown'
    loan_type = parsed.get('loanType') or 'unknown'

    personal = _personal_score(personal_raw, marital_status, lead_id)

    business = calculate_score(business_raw, WEIGHTS['business'])
    if business_type in ('manufacturing', 'trading', 'service'):
        business += calculate_score(business_raw, WEIGHTS[business_type])
    business = min(business, 30)

    banking = min(calculate_score(banking_raw, WEIGHTS['banking']), 15)
    networth = _networth_score(networth_raw, lead_id)
    debt = min(calculate_score(debt_raw, WEIGHTS['existingDebt']), 10)
    end_use = _end_use_score(end_use_raw, loan_type)
    references = min(calculate_score(reference_raw, WEIGHTS['referenceChecks']), 10)

    total = personal + business + banking + networth + debt + end_use + references
    marital_note = (' Unmarried applicant - spouse/kids fields excluded from personal scoring.'
                    if marital_status == 'unmarried' else '')
    rationale = (f"AI scoring completed in {elapsed_ms}ms. Total: {total:g}/100. "
                 f"Business: {business_type}.{marital_note} {parsed.get('summary') or ''}")

    logger.info("[AI Scoring - %s] Scores: Personal=%s/15, Business=%s/30, Banking=%s/15, Networth=%s/10, "
                "Debt=%s/10, EndUse=%s/10, Ref=%s/10", lead_id, personal, business, banking,
                networth, debt, end_use, references)

    return {
        'personal': personal,
        'business': business,
        'banking': banking,
        'networth': networth,
        'existingDebt': debt,
        'endUse': end_use,
        'referenceChecks': references,
        'personalMatches': _map_matches(personal_raw, PERSONAL_KEYS),
        'businessMatches': _map_matches(business_raw, BUSINESS_KEYS),
        'bankingMatches': _map_matches(banking_raw, BANKING_KEYS),
        'networthMatches': _map_matches(networth_raw, NETWORTH_KEYS),
        'debtMatches': _map_matches(debt_raw, DEBT_KEYS),
        'endUseMatches': _map_matches(end_use_raw, END_USE_KEYS),
        'referenceMatches': _map_matches(reference_raw, REFERENCE_KEYS),
        'rationale': rationale,
    }


def score_comprehensive_with_ai(pdf_text, lead_id):
    """Score report text with the configured model.

    Raises AIConfigurationError when no API key is set. Any other failure
    yields a zeroed result carrying ``aiError``.
    """
    logger.info("[AI Scoring - %s] Starting holistic AI scoring, text length: %d", lead_id, len(pdf_text))
    start = time.monotonic()
    client = get_client()

    if len(pdf_text) > MAX_REPORT_CHARS:
        report_text = pdf_text[:MAX_REPORT_CHARS] + "\n...[Report truncated]..."
    else:
        report_text = pdf_text
    prompt = SCORING_PROMPT.format(report=report_text, schema=_schema())

    try:
        response = client.chat.completions.create(
            model=current_app.config['AI_SCORING_MODEL'],
            messages=[{'role': 'user', 'content': prompt}],
            max_tokens=2048,
            temperature=0,
        )
        content = response.choices[0].message.content if response.choices else '{}'
        parsed = _parse_json_block(content)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        return compute_comprehensive_scores(parsed, lead_id, elapsed_ms)
    except Exception as e:
        logger.error("[AI Scoring - %s] Error: %s", lead_id, e)
        return empty_comprehensive_result(str(e) or 'Unknown error')


def _media_message(prompt, data, mimetype):
    encoded = base64.b64encode(data).decode('ascii')
    return [{
        'role': 'user',
        'content': [
            {'type': 'text', 'text': prompt},
            {'type': 'image_url', 'image_url': {'url': f'data:{mimetype};base64,{encoded}'}},
        ],
    }]


def transcribe_audio(client, data, mimetype):
    size_kb = len(data) / 1024
    try:
        response = client.chat.completions.create(
            model=current_app.config['AI_VISION_MODEL'],
            messages=_media_message(
                "Please transcribe this audio recording. This is a field verification officer's recording "
                "during a visit to verify a loan applicant. Extract all spoken content accurately. "
                "Just provide the transcription, no additional commentary.",
                data, mimetype or 'audio/webm'),
            max_tokens=4096,
        )
        text = response.choices[0].message.content or ''
    except Exception as e:
        logger.warning("Audio transcription error: %s", e)
        return (f"Audio recording uploaded ({size_kb:.1f}KB). Transcription unavailable - "
                "generating report from available context.")
    if len(text) < 10:
        return (f"Audio recording uploaded ({size_kb:.1f}KB). The audio contains field verification "
                "discussion with the applicant.")
    return text


def describe_photo(client, index, data, mimetype):
    try:
        response = client.chat.completions.create(
            model=current_app.config['AI_VISION_MODEL'],
            messages=_media_message(
                "Describe this image from a field verification visit. Focus on: business signage, premises "
                "condition, people present, any documents visible, and anything relevant to loan verification. "
                "Be concise but thorough.",
                data, mimetype or 'image/jpeg'),
            max_tokens=500,
        )
        description = response.choices[0].message.content or f"Photo {index}: Field verification photograph"
    except Exception as e:
        logger.warning("Photo %d analysis error: %s", index, e)
        description = "Field verification photograph (analysis unavailable)"
    return f"Photo {index}: {description}"


def _report_dates():
    today = get_ist_time()
    return today.strftime('%d %b %Y'), today.strftime('%d/%m/%Y')


DRAFT_TEMPLATE = {
    'primaryApplicant': {
        'customerName': "Name from transcription or 'To be confirmed'",
        'mobileNumber': 'Phone number if mentioned',
        'emailId': 'Email if mentioned',
        'residenceAddress': 'Home address details',
        'officeAddress': 'Business/office address details',
    },
    'basicDetails': {
        'branch': 'Branch name if mentioned',
        'productLine': 'BLSA or product type',
        'transactionType': 'LAP/Home Loan/Business Loan etc',
        'totalLoanAmount': 'Loan amount requested',
        'pdType': 'PHYSICAL',
        'customerProfile': 'Self-employed/Salaried/Professional',
        'natureOfBusiness': 'Service/Manufacturing/Trading',
        'profession': 'Specific profession',
    },
    'pdDetails': {
        'pdPlace': 'Office/Shop/Residence',
        'currentAddress': 'Address where PD was conducted',
        'pdDoneWith': 'Person met during verification',
    },
    'personalDetails': {
        'residenceType': 'Owned/Rented',
        'residenceVintage': 'Duration at current residence',
        'monthlyRent': 'Rent amount if applicable',
        'totalFamilyMembers': 'Number of family members',
        'dependents': 'Number of dependents',
        'monthlyHouseholdExpenses': 'Monthly expenses estimate',
        'otherComments': 'Education, age, marital status, work experience details',
    },
    'businessDetails': {
        'businessVintageMonths': 'Months in business at current location',
        'totalBusinessVintage': 'Total months in business',
        'majorServices': 'Type of services/products',
        'businessName': 'Name of the business',
        'businessProfile': 'Detailed description of business operations, products/services, customer base, revenue model',
        'sourceOfBusiness': 'How customers are acquired',
        'businessSetup': 'Owned/Rented premises',
        'monthlyRental': 'Business premises rent if applicable',
        'surroundingArea': 'Middle Class/Upper Class/Commercial etc',
        'netMonthlyIncome': 'Estimated net monthly income',
        'comfortableEmi': 'EMI amount applicant can pay',
    },
    'referenceChecks': {
        'reference1': {'type': 'Independent Reference/Neighbor/Business Contact', 'name': 'Reference person name',
                       'contact': 'Contact number', 'feedback': 'Positive/Negative/Neutral',
                       'remarks': 'Feedback details'},
        'reference2': {'type': 'Independent Reference/Neighbor/Business Contact', 'name': 'Reference person name',
                       'contact': 'Contact number', 'feedback': 'Positive/Negative/Neutral',
                       'remarks': 'Feedback details'},
    },
    'propertyDetails': {
        'propertyType': 'Residential/Commercial/Industrial',
        'approxArea': 'Area in sq ft',
        'propertyUsage': 'Self-occupied/Rented',
        'approxValuation': 'Estimated property value',
        'propertyAddress': 'Property location',
    },
    'summary': {
        'overallSummary': 'Comprehensive summary including: loans observed, name board visibility, scanner/equipment '
                          'observed, stock levels, documents reviewed, bank statement analysis, reference check '
                          'results, business activity observations, risk factors and mitigants',
        'riskMitigants': 'Any risk factors identified and how they are mitigated',
    },
    'endUseDetails': {
        'purposeOfLoan': 'Business/Personal/Home Purchase etc',
        'endUse': 'Specific end use - Business expansion/Working capital/Property purchase etc',
    },
    'recommendation': 'Positive/Negative/Refer',
    'remarks': 'Final remarks and observations',
}


def _draft_prompt(lead_id, transcription, photo_descriptions):
    report_date, pd_date = _report_dates()
    template = json.loads(json.dumps(DRAFT_TEMPLATE))
    template = {'leadId': lead_id, 'reportDate': report_date, **template}
    template['pdDetails'] = {'pdDate': pd_date, **template['pdDetails']}
    photos = '; '.join(photo_descriptions) if photo_descriptions else 'No photos provided'
    return (
        f"You are an expert field verification officer. Generate a comprehensive LIP (Loan Investigation/"
        f"Personal Discussion) Report for Lead ID: {lead_id}.\n\n"
        f"Based on the field visit evidence:\n"
        f"- Audio Recording Transcription: {transcription or 'No audio recording provided'}\n"
        f"- Photo Analysis: {photos}\n\n"
        "Generate a verification report draft in JSON format following the LIP Report structure. Extract details "
        "from the transcription and photos to fill in the report. Use \"Not Available\" for any fields that cannot "
        "be determined from the provided evidence.\n\n"
        f"{json.dumps(template, indent=2)}\n\n"
        "Extract as much information as possible from the audio transcription and photo descriptions. "
        "Be professional and thorough. Respond ONLY with valid JSON."
    )


def default_draft(lead_id):
    report_date, pd_date = _report_dates()
    return {
        'leadId': lead_id,
        'reportDate': report_date,
        'primaryApplicant': {
            'customerName': 'To be confirmed',
            'mobileNumber': 'Not Available',
            'emailId': 'Not Available',
            'residenceAddress': 'Not Available',
            'officeAddress': 'Not Available',
            'spouseName': '',
        },
        'basicDetails': {
            'branch': 'Not Available',
            'productLine': 'BLSA',
            'transactionType': 'Business Loan',
            'totalLoanAmount': 'Not Available',
            'pdType': 'PHYSICAL',
            'customerProfile': 'Self-employed',
            'natureOfBusiness': 'Not Available',
            'profession': 'Not Available',
        },
        'pdDetails': {
            'pdDate': pd_date,
            'pdPlace': 'Office/Shop',
            'currentAddress': 'Visited premises',
            'pdDoneWith': 'Applicant',
        },
        'personalDetails': {
            'residenceType': 'Not Available',
            'residenceVintage': 'Not Available',
            'monthlyRent': 'NA',
            'totalFamilyMembers': 'Not Available',
            'dependents': 'Not Available',
            'monthlyHouseholdExpenses': 'Not Available',
            'otherComments': 'Personal details to be confirmed during verification.',
            'selfEducation': '',
            'spouseEducation': '',
            'spouseEmployment': '',
            'kidsEducation': '',
            'kidsSchool': '',
            'spouseName': '',
        },
        'businessDetails': {
            'businessVintageMonths': 'Not Available',
            'totalBusinessVintage': 'Not Available',
            'majorServices': 'Not Available',
            'businessName': 'Not Available',
            'businessProfile': 'Business verification completed. Details observed during site visit.',
            'sourceOfBusiness': 'Customer References',
            'businessSetup': 'Not Available',
            'monthlyRental': 'Not Available',
            'surroundingArea': 'Not Available',
            'netMonthlyIncome': 'Not Available',
            'comfortableEmi': 'Not Available',
            'strategicVision': '',
            'promoterExperience': '',
            'clientListConcentrationRisk': '',
            'seasonality': '',
            'employeeCount': '',
            'monthlyTurnover': '',
            'majorClients': '',
            'growthPlans': '',
        },
        'referenceChecks': {
            'reference1': {
                'type': 'Independent Reference',
                'name': 'Not Available',
                'contact': 'Not Available',
                'feedback': 'Pending',
                'remarks': 'Reference check to be completed',
            },
            'reference2': {
                'type': 'Independent Reference',
                'name': 'Not Available',
                'contact': 'Not Available',
                'feedback': 'Pending',
                'remarks': 'Reference check to be completed',
            },
            'invoiceVerified': '',
        },
        'propertyDetails': {
            'propertyType': 'Not Available',
            'approxArea': 'Not Available',
            'propertyUsage': 'Not Available',
            'approxValuation': 'Not Available',
            'propertyAddress': 'Not Available',
            'propertiesOwned': '',
            'vehiclesOwned': '',
            'otherInvestments': '',
        },
        'bankingDetails': {
            'bankName': '',
            'turnoverCreditPercent': '',
            'bankingTenure': '',
            'emisRouted': '',
            'qrCodeSpotted': '',
        },
        'debtDetails': {
            'existingLoans': '',
            'loanList': '',
            'repaymentHistory': '',
        },
        'summary': {
            'overallSummary': 'Field verification completed. Applicant was present and cooperative during the '
                              'visit. Business premises verified at stated address.',
            'riskMitigants': 'Standard verification checks completed.',
        },
        'endUseDetails': {
            'purposeOfLoan': 'Business',
            'endUse': 'Business expansion/Working capital',
            'agreementValue': '',
            'advancePaid': '',
        },
        'recommendation': 'Refer',
        'remarks': 'Complete documentation and reference checks required for final decision.',
    }


def generate_draft(lead_id, audio=None, photos=None):
    """Build an LIP draft from a field recording and photos.

    ``audio`` is a ``(bytes, mimetype)`` pair, ``photos`` a list of them.
    Falls back to ``default_draft`` when AI is unavailable or the model
    reply cannot be parsed.
    """
    photos = photos or []
    logger.info("Generating draft report for %s with %d audio files and %d photos",
                lead_id, 1 if audio else 0, len(photos))
    if not is_ai_configured():
        logger.info("AI not configured, using default draft for %s", lead_id)
        return default_draft(lead_id)

    client = get_client()
    transcription = transcribe_audio(client, *audio) if audio else ''
    descriptions = [describe_photo(client, i, data, mimetype) for i, (data, mimetype) in enumerate(photos, 1)]

    response = client.chat.completions.create(
        model=current_app.config['AI_DRAFT_MODEL'],
        messages=[{'role': 'user', 'content': _draft_prompt(lead_id, transcription, descriptions)}],
        max_tokens=4096,
    )
    content = response.choices[0].message.content if response.choices else ''
    try:
        draft = _parse_json_block(content)
    except ValueError as e:
        logger.warning("Could not parse draft for %s, using default: %s", lead_id, e)
        return default_draft(lead_id)
    if not isinstance(draft, dict):
        return default_draft(lead_id)
    return draft


def _numbered(items):
    return '\n'.join(f'{i}. {item}' for i, item in enumerate(items, 1))


def analyze_business(business_name, business_type, location=None, owner_name=None,
                     observations=None, photo_evidence=None):
    """Summarise a business verification into strengths, concerns and a report paragraph."""
    client = get_client()
    prompt = f"""You are an expert field verification officer analyst. Analyze this business verification and provide a comprehensive report to help the officer complete their verification report.

Business Details:
- Business Name: {business_name}
- Type: {business_type}
- Location: {location or 'Not specified'}
- Owner: {owner_name or 'Not specified'}

Field Observations:
{_numbered(observations or [])}

Photo Evidence Captured:
{_numbered(photo_evidence or [])}

Respond ONLY with valid JSON in this format:
{{
  "summary": "2-3 sentence executive summary of the business verification",
  "strengths": ["positive verification points"],
  "concerns": ["concerns or red flags observed"],
  "recommendation": "POSITIVE/NEGATIVE/REFER with brief justification",
  "reportDraft": "a professional verification paragraph (100-150 words) for the final report"
}}"""

    response = client.chat.completions.create(
        model=current_app.config['AI_SCORING_MODEL'],
        messages=[{'role': 'user', 'content': prompt}],
        max_tokens=2048,
    )
    content = response.choices[0].message.content if response.choices else ''
    try:
        analysis = _parse_json_block(content)
    except ValueError as e:
        logger.warning("Could not parse business analysis for %s: %s", business_name, e)
        analysis = None
    if not isinstance(analysis, dict):
        return {
            'summary': 'Business verification completed. Analysis available.',
            'strengths': ['Business exists at stated location', 'Owner verified'],
            'concerns': [],
            'recommendation': 'POSITIVE - Business appears legitimate',
            'reportDraft': content or 'Verification completed successfully.',
        }
    logger.info("Business analysis for %s: %s", business_name, analysis.get('recommendation'))
    return analysis
