import io
from unittest.mock import MagicMock, patch

from pypdf import PdfWriter

from compliance.services import pdf_forms

FIELDS = {
    "BusinessName": {"/FT": "/Tx", "/Ff": 2, "/V": "Old Name"},
    "Consent": {"/FT": "/Btn", "/Ff": 0, "/_States_": ["/Yes", "/Off"]},
    "EntityType": {"/FT": "/Btn", "/Ff": pdf_forms.FIELD_FLAG_RADIO, "/_States_": ["/LLC", "/Corp", "/Off"]},
    "State": {"/FT": "/Ch", "/Opt": [["CA", "California"], "Texas"]},
    "Signature": {"/FT": "/Sig"},
    "Submit": {"/FT": "/Btn", "/Ff": pdf_forms.FIELD_FLAG_PUSHBUTTON},
}


def _blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class TestExtractFormFields:
    def test_unreadable_bytes_yield_empty_list(self):
        assert pdf_forms.extract_form_fields(b"definitely not a pdf") == []

    def test_pdf_without_form(self):
        assert pdf_forms.extract_form_fields(_blank_pdf()) == []

    def test_readable_pdf_check(self):
        assert pdf_forms.is_readable_pdf(_blank_pdf()) is True
        assert pdf_forms.is_readable_pdf(b"this is not a pdf") is False

    def test_field_descriptions(self):
        with patch.object(pdf_forms, "_read_fields", return_value=FIELDS), patch.object(pdf_forms, "PdfReader"):
            fields = {f["name"]: f for f in pdf_forms.extract_form_fields(b"%PDF")}

        assert set(fields) == {"BusinessName", "Consent", "EntityType", "State", "Signature"}
        assert fields["BusinessName"] == {
            "name": "BusinessName",
            "type": "text",
            "options": None,
            "required": True,
            "default_value": "Old Name",
        }
        assert fields["Consent"]["type"] == "checkbox"
        assert fields["EntityType"]["options"] == ["LLC", "Corp"]
        assert fields["State"]["options"] == ["California", "Texas"]
        assert fields["Signature"]["type"] == "signature"


class TestFillPdfForm:
    def _fill(self, values):
        writer = MagicMock()
        writer.pages = [MagicMock()]
        writer.write.side_effect = lambda buf: buf.write(b"%PDF-filled")
        with patch.object(pdf_forms, "_read_fields", return_value=FIELDS), \
                patch.object(pdf_forms, "PdfReader"), \
                patch.object(pdf_forms, "PdfWriter", return_value=writer):
            result = pdf_forms.fill_pdf_form(b"%PDF", values)
        return result, writer

    def test_fills_matching_fields(self):
        result, writer = self._fill(
            {"BusinessName": "Acme LLC", "Consent": "yes", "EntityType": "llc", "State": "texas"}
        )
        assert result["content"] == b"%PDF-filled"
        assert result["filled_fields"] == ["BusinessName", "Consent", "EntityType", "State"]
        assert result["signature_fields"] == ["Signature"]
        assert result["warnings"] == []
        updates = writer.update_page_form_field_values.call_args.args[1]
        assert updates == {"BusinessName": "Acme LLC", "Consent": "/Yes", "EntityType": "/LLC", "State": "Texas"}
        writer.set_need_appearances_writer.assert_called_once_with(True)

    def test_unknown_option_is_skipped_with_warning(self):
        result, _ = self._fill({"State": "Oregon", "Consent": "no"})
        assert "State" in result["skipped_fields"]
        assert result["warnings"] == ['Value "Oregon" not in options for field "State"']
        assert "BusinessName" in result["skipped_fields"]
        assert result["filled_fields"] == ["Consent"]

    def test_no_values_leaves_form_untouched(self):
        result, writer = self._fill({})
        assert result["filled_fields"] == []
        writer.update_page_form_field_values.assert_not_called()
