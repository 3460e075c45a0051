"""
Canonical checklist content for the workflow templates.

Catalogue entries are plain data; templates.py deep-copies them into fresh
phase payloads, so nothing here is ever mutated.
"""
from transplantflow.schemas.patient import BLOOD_TYPES
from transplantflow.schemas.workflow import (
    ApplicabilityRule,
    ClearanceItem,
    ConditionalInput,
    Consultation,
    ImagingTestResult,
    MedicalTestItem,
    ReviewItem,
    SurgeryPreparationItem,
)

BLOOD_LABS = "Blood Tests & Laboratory Studies"
URINE_OTHER = "Urine & Other Tests"
IMAGING = "Imaging & Specialized Tests"

SCREENING_CATEGORIES = [BLOOD_LABS, URINE_OTHER, IMAGING]

REACTIVITY = ["Non-Reactive", "Reactive"]
POS_NEG = ["Negative", "Positive"]
CULTURE = ["No Growth", "Positive"]


def _lab(id, name, unit, normal_range, category=BLOOD_LABS, **extra) -> MedicalTestItem:
    return MedicalTestItem(
        id=id, name=name, unit=unit, normal_range=normal_range, category=category, input_type="number", **extra
    )


def _choice(id, name, options, category=BLOOD_LABS, **extra) -> MedicalTestItem:
    return MedicalTestItem(id=id, name=name, category=category, input_type="dropdown", dropdown_options=options, **extra)


def _text(id, name, normal_range="", category=IMAGING, **extra) -> MedicalTestItem:
    return MedicalTestItem(id=id, name=name, normal_range=normal_range, category=category, input_type="text", **extra)


def _organism() -> ConditionalInput:
    return ConditionalInput(on_value="Positive", placeholder="Specify organism")


def _shared_blood_panel() -> list[MedicalTestItem]:
    return [
        _choice("blood_group", "Blood Grouping", BLOOD_TYPES, normal_range="A/B/AB/O [+/-]"),
        # CBC
        _lab("hemoglobin", "Hemoglobin (Hb)", "g/dL", "13.5-17.5"),
        _lab("total_count", "Total Count (TC)", "cells/mcL", "4500-11000"),
        _lab("neutrophils", "Neutrophils", "%", "40-60"),
        _lab("lymphocytes", "Lymphocytes", "%", "20-40"),
        _lab("platelets", "Platelets", "x10^3/uL", "150-450"),
        # RFT
        _lab("urea", "Urea", "mg/dL", "7-20"),
        _lab("creatinine", "Creatinine", "mg/dL", "0.6-1.3"),
        _lab("sodium", "Sodium (Na)", "mEq/L", "135-145"),
        _lab("potassium", "Potassium (K)", "mEq/L", "3.5-5.1"),
        _lab("uric_acid_rft", "Uric Acid", "mg/dL", "3.5-7.2"),
        # Coagulation
        _lab("bt", "Bleeding Time (BT)", "mins", "2-7"),
        _lab("ct", "Clotting Time (CT)", "mins", "8-15"),
        _lab("pt", "Prothrombin Time (PT)", "seconds", "11-13.5"),
        _lab("inr", "INR", "", "0.8-1.1"),
        _lab("aptt", "APTT", "seconds", "25-35"),
        # Diabetic
        _lab("fbs", "FBS", "mg/dL", "70-100"),
        _lab("ppbs", "PP", "mg/dL", "70-140"),
        _lab("hba1c", "HbA1C", "%", "<5.7"),
        # Serology
        _choice("hbsag", "HBsAg", REACTIVITY),
        _choice("anti_hcv", "Anti-HCV", REACTIVITY),
        _choice("hiv", "HIV 1 & 2", REACTIVITY),
        # LFT
        _lab("total_bilirubin", "Bilirubin (Total)", "mg/dL", "0.1-1.2"),
        _lab("cong_bilirubin", "Bilirubin (Conjugated)", "mg/dL", "0.0-0.3"),
        _lab("sgpt", "SGPT (ALT)", "U/L", "7-56"),
        _lab("sgot", "SGOT (AST)", "U/L", "10-40"),
        _lab("alp", "Alkaline Phosphatase (ALP)", "U/L", "44-147"),
        # TFT
        _lab("ft3", "Free T3", "pg/mL", "2.0-4.4"),
        _lab("ft4", "Free T4", "ng/dL", "0.8-1.8"),
        _lab("tsh", "TSH", "mIU/L", "0.4-4.0"),
        # Lipid profile
        _lab("total_cholesterol", "Total Cholesterol", "mg/dL", "<200"),
        _lab("triglycerides", "Triglycerides (TG)", "mg/dL", "<150"),
        _lab("hdl", "HDL Cholesterol", "mg/dL", ">40"),
        _lab("ldl", "LDL Cholesterol", "mg/dL", "<100"),
        _lab("cmv_igg", "Cytomegalovirus (CMV) - IgG", "AU/mL", "<0.6"),
        _lab("cmv_igm", "Cytomegalovirus (CMV) - IgM", "Index", "<0.85"),
        _lab(
            "psa", "PSA", "ng/mL", "<4.0",
            conditional=ApplicabilityRule(type="both", gender="Male", min_age=50),
        ),
    ]


def recipient_screening_tests() -> list[MedicalTestItem]:
    return _shared_blood_panel() + [
        # Bone profile
        _lab("calcium", "Calcium", "mg/dL", "8.6-10.3"),
        _lab("phosphorus", "Phosphorus", "mg/dL", "2.5-4.5"),
        _lab("ipth", "iPTH", "pg/mL", "10-65"),
        _lab("vitd", "Vitamin D", "ng/mL", "30-100"),
        # Protein
        _lab("total_protein", "Total Protein", "g/dL", "6.0-8.3"),
        _lab("albumin", "Albumin", "g/dL", "3.4-5.4"),
        # Iron profile
        _lab("serum_iron", "Serum Iron", "mcg/dL", "60-170"),
        _lab("ferritin", "Ferritin", "ng/mL", "30-400"),
        _lab("tibc", "TIBC", "mcg/dL", "240-450"),
        _lab("tsat", "TSAT", "%", "20-50"),
        _choice("blood_cs", "Blood C/S", CULTURE, conditional_input=_organism()),
        _choice("ana_screening", "ANA-Screening", POS_NEG),
        # Urine & other
        _text("urine_re", "Urine R/E", "Clear, pH 5-8", category=URINE_OTHER),
        _choice(
            "pregnancy_test", "Urine Pregnancy Test", POS_NEG, category=URINE_OTHER,
            conditional=ApplicabilityRule(type="gender", gender="Female"),
        ),
        _text("stool_re", "Stool R/E", "No parasites/ova", category=URINE_OTHER),
        _choice("stool_occult", "Stool Occult Blood", POS_NEG, category=URINE_OTHER),
        # Imaging & specialized
        _text("chest_xray", "Chest X-ray P/A view", "Clear lung fields"),
        _text("kub_xray", "X-ray KUB", "No calcification"),
        _text("ecg", "ECG", "Normal sinus rhythm"),
        _text("echo", "ECHO", placeholder="RWMA, LVEF-%, other abnormality"),
        _text("usg_abdomen", "USG Abdomen & Pelvis", "Normal organ size"),
        _text("usg_doppler", "USG Doppler of bilateral iliac vessels", "Patent vessels"),
        _choice("sputum_afb", "Sputum AFB: I & II", POS_NEG, category=IMAGING),
        _choice("sputum_cs", "Sputum C/S", CULTURE, category=IMAGING, conditional_input=_organism()),
        _text(
            "colonoscopy", "Colonoscopy", "Normal findings",
            conditional=ApplicabilityRule(type="age", min_age=60),
        ),
    ]


def donor_screening_tests() -> list[MedicalTestItem]:
    return _shared_blood_panel() + [
        _lab("calcium", "Calcium", "mg/dL", "8.6-10.3"),
        _lab("albumin", "Albumin", "g/dL", "3.4-5.4"),
        _lab("ogtt", "Oral Glucose Tolerance Test (2h)", "mg/dL", "<140"),
        _choice("vdrl", "VDRL", REACTIVITY),
        # Urine & other
        _text("urine_re", "Urine R/E", "Clear, pH 5-8", category=URINE_OTHER),
        _choice("urine_cs", "Urine C/S", CULTURE, category=URINE_OTHER, conditional_input=_organism()),
        _lab("urine_protein_24h", "24-hour Urine Protein", "mg/day", "<150", category=URINE_OTHER),
        _lab("creatinine_clearance", "Creatinine Clearance", "mL/min", "90-140", category=URINE_OTHER),
        _lab("urine_acr", "Urine Albumin/Creatinine Ratio", "mg/g", "<30", category=URINE_OTHER),
        _choice(
            "pregnancy_test", "Urine Pregnancy Test", POS_NEG, category=URINE_OTHER,
            conditional=ApplicabilityRule(type="gender", gender="Female"),
        ),
        # Imaging & specialized
        _text("chest_xray", "Chest X-ray P/A view", "Clear lung fields"),
        _text("ecg", "ECG", "Normal sinus rhythm"),
        _text("echo", "ECHO", placeholder="RWMA, LVEF-%, other abnormality"),
        _text("usg_abdomen", "USG Abdomen & Pelvis", "Normal organ size"),
        _text(
            "pap_smear", "Pap Smear", "Normal cytology",
            conditional=ApplicabilityRule(type="gender", gender="Female"),
        ),
        _text(
            "mammography", "Mammography", "BI-RADS 1",
            conditional=ApplicabilityRule(type="both", gender="Female", min_age=40),
        ),
        _text(
            "colonoscopy", "Colonoscopy", "Normal findings",
            conditional=ApplicabilityRule(type="age", min_age=50),
        ),
    ]


def recipient_imaging_tests() -> list[ImagingTestResult]:
    return [
        ImagingTestResult(name="Echocardiogram (ECHO)"),
        ImagingTestResult(name="USG Doppler of Iliac Vessels"),
        ImagingTestResult(name="Coronary Angiography (if indicated)"),
    ]


def _consult(id, department, is_applicable=True) -> Consultation:
    return Consultation(id=id, department=department, is_applicable=is_applicable)


def donor_consultations() -> list[Consultation]:
    return [
        _consult("donor_uro", "Urology"),
        _consult("donor_cardio", "Cardiology"),
        _consult("donor_pulmo", "Pulmonology"),
        _consult("donor_psych", "Psychiatry/Social Worker"),
        _consult("donor_dental", "Dental"),
        _consult("donor_ent", "ENT"),
        _consult("donor_gyno", "Gynecology", is_applicable=False),
        _consult("donor_anesth", "Anesthesiology (PAC)"),
    ]


def recipient_consultations() -> list[Consultation]:
    return [
        _consult("rec_nephro", "Nephrology"),
        _consult("rec_cardio", "Cardiology"),
        _consult("rec_pulmo", "Pulmonology"),
        _consult("rec_psych", "Psychiatry/Social Worker"),
        _consult("rec_dental", "Dental"),
        _consult("rec_ent", "ENT"),
        _consult("rec_gyno", "Gynecology", is_applicable=False),
        _consult("rec_anesth", "Anesthesiology (PAC)"),
        _consult("rec_gi", "Gastroenterology (GI)", is_applicable=False),
    ]


def donor_clearance_items() -> list[ClearanceItem]:
    return [
        ClearanceItem(id="donor_med_review", title="Final Medical Review",
                      description="Comprehensive assessment of all evaluation data."),
        ClearanceItem(id="donor_surg_clear", title="Surgical Clearance",
                      description="Final sign-off on operative fitness for donation."),
        ClearanceItem(id="donor_anesth_clear", title="Anesthesia Clearance",
                      description="Final assessment of perioperative risk."),
        ClearanceItem(id="donor_consent", title="Final Donation Consent",
                      description="Verification of informed consent for donation."),
        ClearanceItem(id="donor_advocate", title="Independent Advocate Clearance",
                      description="Confirmation of ethical oversight and donor well-being."),
    ]


def recipient_clearance_items() -> list[ClearanceItem]:
    return [
        ClearanceItem(id="rec_med_review", title="Comprehensive Medical Review",
                      description="Final assessment of readiness for transplant."),
        ClearanceItem(id="rec_surg_clear", title="Surgical Clearance",
                      description="Final sign-off on operative candidacy."),
        ClearanceItem(id="rec_anesth_clear", title="Anesthesia Clearance",
                      description="Final assessment of perioperative optimization."),
        ClearanceItem(id="rec_consent", title="Final Informed Consent",
                      description="Verification of informed consent for transplant procedure."),
    ]


def team_review_items() -> list[ReviewItem]:
    return [
        ReviewItem(id="case_presentation", title="Case Presentation",
                   description="Present patient case to multidisciplinary team"),
        ReviewItem(id="team_discussion", title="Team Discussion",
                   description="Multidisciplinary team discussion and evaluation"),
        ReviewItem(id="risk_review", title="Risk Assessment Review",
                   description="Review of surgical and medical risks"),
        ReviewItem(id="transplant_approval", title="Transplant Approval",
                   description="Official transplant committee approval"),
        ReviewItem(id="surgery_date", title="Surgery Date Assignment",
                   description="Assignment of tentative transplant date"),
    ]


def donor_preparation_items() -> list[SurgeryPreparationItem]:
    return [
        SurgeryPreparationItem(id="donor_final_crossmatch", title="Final Crossmatch",
                               description="Final compatibility test before surgery.",
                               category="medical", priority="critical"),
        SurgeryPreparationItem(id="donor_pre_admit_testing", title="Pre-admission Testing (PAT)",
                               description="Final blood work and ECG.", category="medical", priority="high"),
        SurgeryPreparationItem(id="donor_anesthesia_consult", title="Anesthesia Pre-Op Consult",
                               description="Final assessment by the anesthesiologist.",
                               category="anesthesia", priority="high"),
        SurgeryPreparationItem(id="donor_surgical_consent", title="Surgical Consent Signed",
                               description="Informed consent for nephrectomy confirmed and signed.",
                               category="administrative", priority="critical"),
        SurgeryPreparationItem(id="donor_admission_scheduled", title="Hospital Admission Scheduled",
                               description="Bed and admission time confirmed.",
                               category="administrative", priority="medium"),
        SurgeryPreparationItem(id="donor_npo_verified", title="NPO Status Verified",
                               description='Confirmation of "nothing by mouth" status.',
                               category="surgical", priority="critical"),
    ]


def recipient_preparation_items() -> list[SurgeryPreparationItem]:
    return [
        SurgeryPreparationItem(id="rec_final_crossmatch", title="Final Crossmatch",
                               description="Final compatibility test before surgery.",
                               category="medical", priority="critical"),
        SurgeryPreparationItem(id="rec_pre_op_dialysis", title="Pre-operative Dialysis",
                               description="Final dialysis session completed as scheduled.",
                               category="medical", priority="high"),
        SurgeryPreparationItem(id="rec_immuno_protocol", title="Immunosuppression Protocol Initiated",
                               description="First dose of induction immunosuppressants administered.",
                               category="medical", priority="critical"),
        SurgeryPreparationItem(id="rec_anesthesia_consult", title="Anesthesia Pre-Op Consult",
                               description="Final assessment by the anesthesiologist.",
                               category="anesthesia", priority="high"),
        SurgeryPreparationItem(id="rec_surgical_consent", title="Surgical Consent Signed",
                               description="Informed consent for transplantation confirmed and signed.",
                               category="administrative", priority="critical"),
        SurgeryPreparationItem(id="rec_blood_products", title="Blood Products Availability Confirmed",
                               description="Availability of matched blood products confirmed.",
                               category="surgical", priority="high"),
    ]
