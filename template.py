PREVIEW_CSS = """
.q-sheet{font-family:sans-serif;font-size:12px;color:#000;border:2px solid #000;padding:24px}
.q-sheet p{margin:0 0 2px 0}
.q-title{text-align:center;font-size:26px;font-weight:bold;margin:0 0 14px 0;padding-bottom:6px;border-bottom:2px solid #000}
.q-company{margin-bottom:12px;padding-bottom:10px;border-bottom:1px solid #000}
.q-company-name{font-size:18px;font-weight:bold}
.q-parties{width:100%;border-collapse:collapse;margin-bottom:12px;border-bottom:1px solid #000}
.q-parties td{vertical-align:top;padding:0 0 10px 0}
.q-meta{text-align:right}
.q-items{width:100%;border-collapse:collapse;border:1px solid #000;margin-bottom:12px}
.q-items th{font-weight:bold;text-align:left;border-bottom:2px solid #000;border-right:1px solid #000;padding:4px 8px}
.q-items td{border-right:1px solid #000;padding:4px 8px;vertical-align:top}
.q-items .num{text-align:right}
.q-empty{text-align:center;padding:20px}
.q-total td{font-weight:bold;border-top:2px solid #000;border-bottom:2px solid #000}
.q-req-label{font-weight:bold;text-decoration:underline;margin-bottom:4px}
.q-sign{width:100%;border-collapse:collapse;margin-top:28px}
.q-sign td{padding-top:6px}
.q-sign .right{text-align:right}
"""

PREVIEW_TEMPLATE = """<div class="q-sheet">
{% if q.show_title_heading %}<p class="q-title">QUOTATION</p>{% endif %}
<div class="q-company">
  <p class="q-company-name">{{ company.name }}</p>
  {% for line in company.address_lines %}<p>{{ line }}</p>{% endfor %}
  <p>{{ company.phone }}</p>
  {% if company.email %}<p>Email: {{ company.email }}</p>{% endif %}
</div>
<table class="q-parties"><tr>
  <td>
    <p><b>{{ q.customer_name or "N/A" }}</b></p>
    {% for line in (q.address or "N/A").splitlines() %}<p>{{ line }}</p>{% endfor %}
    <p>MOB.NO. {{ q.mobile_number or "N/A" }}</p>
  </td>
  <td class="q-meta">
    <p>DATE: {{ q.date }}</p>
    <p>Quote No: {{ q.quote_number or "N/A" }}</p>
    <p>Valid for {{ q.validity_days }} Days</p>
    <p>Salesperson: {{ q.sales_person or "N/A" }}</p>
  </td>
</tr></table>
<table class="q-items">
  <tr><th>Description of Goods</th><th class="num">QTY</th><th>Unit</th><th class="num">Rate</th><th class="num">Amount</th></tr>
  {% for item in q.items %}
  <tr>
    <td>{{ item.description }}</td>
    <td class="num">{{ qty(item.quantity) }}</td>
    <td>{{ item.unit }}</td>
    <td class="num">{{ fmt(item.unit_rate) }}</td>
    <td class="num">{{ fmt(item.amount) }}</td>
  </tr>
  {% else %}
  <tr><td colspan="5" class="q-empty">(No Items)</td></tr>
  {% endfor %}
  <tr class="q-total"><td colspan="4" class="num">GRAND TOTAL</td><td class="num">{{ fmt(q.grand_total()) }}</td></tr>
</table>
{% if q.requirements.strip() %}
<div class="q-req">
  <p class="q-req-label">Requirements:</p>
  {% for line in q.requirements.splitlines() %}<p>{{ line }}</p>{% endfor %}
</div>
{% endif %}
<table class="q-sign"><tr>
  <td>Prepared By: {{ q.prepared_by or "................" }}</td>
  <td class="right">Authorised Signatory</td>
</tr></table>
</div>
"""

BASE_CSS = """
  :root{--ink:#0b0f17;--muted:#6b7280;--line:#e5e7eb;--bad:#b91c1c;--ok:#15803d;--accent:#1d4ed8}
  html,body{margin:0;padding:0;background:#f8fafc;color:var(--ink);font:14px/1.4 system-ui,-apple-system,Segoe UI,Roboto,Arial,sans-serif}
  .bar{display:flex;justify-content:space-between;align-items:center;background:var(--accent);color:#fff;padding:10px 16px}
  .bar a{color:#fff;text-decoration:none;border:1px solid #fff;border-radius:6px;padding:4px 10px}
  .container{max-width:1100px;margin:0 auto;padding:16px}
  .card{background:#fff;border:1px solid var(--line);border-radius:8px;padding:16px;margin-bottom:16px}
  .grid{display:grid;grid-template-columns:1fr 1fr;gap:12px}
  label{display:block;font-size:12px;color:var(--muted);margin-top:8px}
  input,select,textarea{width:100%;box-sizing:border-box;padding:6px 8px;border:1px solid var(--line);border-radius:6px;font:inherit}
  input[type=checkbox]{width:auto}
  .field-error input,.field-error textarea{border-color:var(--bad)}
  .err-msg{color:var(--bad);font-size:11px}
  .item-row{display:grid;grid-template-columns:3fr 1fr 1.4fr 1fr 1fr auto;gap:8px;align-items:end}
  table.items{width:100%;border-collapse:collapse;margin-top:12px}
  table.items th,table.items td{border-bottom:1px solid var(--line);padding:6px;text-align:left}
  table.items .num{text-align:right}
  .btn{border:1px solid var(--line);background:#fff;color:#111827;border-radius:6px;padding:7px 12px;cursor:pointer}
  .btn.primary{background:var(--accent);border-color:var(--accent);color:#fff}
  .btn.ok{background:var(--ok);border-color:var(--ok);color:#fff}
  .btn.danger{color:var(--bad)}
  .btn[disabled]{opacity:.5;cursor:not-allowed}
  .actions{display:flex;flex-wrap:wrap;gap:8px;justify-content:center}
  .preview{overflow-x:auto;background:#fff;margin-bottom:16px}
  .preview .q-sheet{width:800px;box-sizing:border-box;margin:0 auto}
  .toasts{position:fixed;bottom:16px;left:50%;transform:translateX(-50%);display:flex;flex-direction:column;gap:8px;z-index:20}
  .toast{color:#fff;border-radius:6px;padding:10px 14px;min-width:280px;display:flex;justify-content:space-between;gap:12px}
  .toast.success{background:var(--ok)}
  .toast.error{background:var(--bad)}
  .toast button{background:transparent;border:0;color:#fff;cursor:pointer;font-size:16px}
"""

TOASTS_SNIPPET = """
<div class="toasts">
{% for category, message in get_flashed_messages(with_categories=true) %}
  <div class="toast {{ category }}" role="alert"><span>{{ message }}</span><button type="button" aria-label="Close" onclick="this.parentElement.remove()">&times;</button></div>
{% endfor %}
</div>
<script>
setTimeout(function(){document.querySelectorAll('.toast').forEach(function(t){t.remove();});}, {{ notification_timeout_ms }});
</script>
"""

LOGIN_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Login</title>
<meta name="viewport" content="width=device-width, initial-scale=1">
<style>""" + BASE_CSS + """
  .login{max-width:420px;margin:64px auto}
  .alert{background:#fff1f2;color:var(--bad);border:1px solid #fecdd3;border-radius:6px;padding:8px 12px;margin-bottom:8px}
</style>
</head>
<body>
<div class="login card">
  <h2 style="text-align:center">Login to {{ company_name }}</h2>
  {% if error %}<div class="alert">{{ error }}</div>{% endif %}
  <form method="post" action="{{ url_for('login') }}">
    <label for="username">Username</label>
    <input id="username" name="username" value="{{ username }}" required autofocus>
    <label for="password">Password</label>
    <input id="password" name="password" type="password" required>
    <p><button class="btn primary" type="submit" style="width:100%">Login</button></p>
  </form>
</div>
</body>
</html>
"""

INDEX_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{{ app_title }}</title>
<meta name="viewport" content="width=device-width, initial-scale=1">
<style>""" + BASE_CSS + PREVIEW_CSS + """</style>
</head>
<body>
<div class="bar"><strong>{{ app_title }}</strong><a href="{{ url_for('logout') }}">Logout</a></div>
<div class="container">
<form method="post" action="{{ url_for('index') }}" id="quote-form">
  <input type="hidden" name="show_title_heading_present" value="1">
  <div class="card">
    <h3>Edit Quotation Details</h3>
    <div class="grid">
      <div>
        {% macro text_field(name, label, multiline=false, rows=2) -%}
        <div class="{{ 'field-error' if errors.get(name) }}">
          <label for="{{ name }}">{{ label }}</label>
          {% if multiline %}
          <textarea id="{{ name }}" name="{{ name }}" rows="{{ rows }}">{{ q[name] }}</textarea>
          {% else %}
          <input id="{{ name }}" name="{{ name }}" value="{{ q[name] }}">
          {% endif %}
          {% if errors.get(name) %}<div class="err-msg">{{ errors[name] }}</div>{% endif %}
        </div>
        {%- endmacro %}
        {{ text_field("customer_name", "Customer Name") }}
        {{ text_field("address", "Address", multiline=true) }}
        {{ text_field("mobile_number", "Mobile") }}
        {{ text_field("requirements", "Requirements", multiline=true, rows=3) }}
        {{ text_field("prepared_by", "Prepared By") }}
      </div>
      <div>
        {{ text_field("quote_number", "Quote No") }}
        {{ text_field("date", "Date") }}
        {{ text_field("validity_days", "Valid Days") }}
        {{ text_field("sales_person", "Salesperson") }}
        <label><input type="checkbox" name="show_title_heading" {{ "checked" if q.show_title_heading }}> Show 'QUOTATION' Title in Preview/Export</label>
      </div>
    </div>

    <h3>Add Item</h3>
    <div class="item-row">
      <div><label for="item_description">Description</label><input id="item_description" name="item_description" value="{{ draft.description }}"></div>
      <div><label for="item_quantity">Quantity</label><input id="item_quantity" name="item_quantity" type="number" min="0" step="any" value="{{ qty(draft.quantity) if draft.quantity else '' }}"></div>
      <div>
        <label for="item_unit">Unit</label>
        <select id="item_unit" name="item_unit" onchange="var c=document.getElementById('item_custom_unit');c.value='';c.style.display=this.value==='{{ custom_unit }}'?'block':'none';">
          <option value="">Select</option>
          {% for unit in units %}<option value="{{ unit }}" {{ "selected" if draft.unit == unit }}>{{ unit }}</option>{% endfor %}
          <option value="{{ custom_unit }}" {{ "selected" if draft.unit == custom_unit }}>Other</option>
        </select>
        <input id="item_custom_unit" name="item_custom_unit" placeholder="Custom Unit" value="{{ draft.custom_unit }}" style="margin-top:4px;display:{{ 'block' if draft.unit == custom_unit else 'none' }}">
      </div>
      <div><label for="item_rate">Rate</label><input id="item_rate" name="item_rate" type="number" min="0" step="any" value="{{ draft.unit_rate if draft.unit_rate else '' }}"></div>
      <div><label>Amount</label><input value="{{ fmt(draft.amount) }}" readonly></div>
      <div><button class="btn primary" name="action" value="add_item">Add</button></div>
    </div>

    <table class="items">
      <tr><th>Description</th><th class="num">QTY</th><th>Unit</th><th class="num">Rate</th><th class="num">Amount</th><th>Action</th></tr>
      {% for item in q.items %}
      <tr>
        <td>{{ item.description }}</td>
        <td class="num">{{ qty(item.quantity) }}</td>
        <td>{{ item.unit }}</td>
        <td class="num">{{ fmt(item.unit_rate) }}</td>
        <td class="num">{{ fmt(item.amount) }}</td>
        <td><button class="btn danger" name="action" value="remove_item:{{ loop.index0 }}">Delete</button></td>
      </tr>
      {% else %}
      <tr><td colspan="6" style="text-align:center">No items added yet.</td></tr>
      {% endfor %}
    </table>
    <p><button class="btn" name="action" value="save">Update Preview</button></p>
  </div>

  <div class="preview">{{ preview|safe }}</div>

  <div class="actions">
    <button class="btn ok" formaction="{{ url_for('submit') }}" {{ "disabled" if not q.items }}>Submit &amp; Create New</button>
    <button class="btn primary" formaction="{{ url_for('export_pdf') }}">Export to PDF</button>
    <button class="btn" formaction="{{ url_for('export_xlsx') }}">Export to Excel</button>
  </div>
</form>

<form method="post" action="{{ url_for('import_pdf') }}" enctype="multipart/form-data" class="actions" style="margin-top:12px">
  <input type="file" name="document" accept=".pdf" style="width:auto" required>
  <button class="btn" type="submit">Upload PDF</button>
</form>
</div>
""" + TOASTS_SNIPPET + """
{% if pending_download %}<iframe src="{{ url_for('download') }}" style="display:none"></iframe>{% endif %}
</body>
</html>
"""
