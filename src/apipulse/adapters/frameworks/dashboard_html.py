"""Single-page dashboard served at ``/``.

The page is static; it reads everything from the JSON API.
"""

DASHBOARD_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>API Usage Analytics</title>
<script src="https://cdn.jsdelivr.net/npm/chart.js@4.4.0/dist/chart.umd.min.js"></script>
<style>
  body { font-family: system-ui, sans-serif; margin: 0; background: #f4f5fb; }
  header { display: flex; gap: 1rem; align-items: center; padding: 1rem 2rem;
           background: #4c51bf; color: #fff; }
  header h1 { font-size: 1.25rem; margin: 0; flex: 1; }
  main { padding: 1.5rem 2rem; display: grid; gap: 1.5rem; }
  section { background: #fff; border-radius: 8px; padding: 1rem 1.25rem;
            box-shadow: 0 1px 3px rgba(0,0,0,.08); }
  table { width: 100%; border-collapse: collapse; font-size: .9rem; }
  th, td { text-align: left; padding: .4rem .5rem; border-bottom: 1px solid #eee; }
  td.num, th.num { text-align: right; font-variant-numeric: tabular-nums; }
  tr.clickable { cursor: pointer; }
  tr.clickable:hover { background: #f0f1ff; }
  #error { color: #c53030; }
  #breakdown:empty { display: none; }
</style>
</head>
<body>
<header>
  <h1>API Usage Analytics</h1>
  <select id="period">
    <option value="hour">Last hour</option>
    <option value="day">Last 24 hours</option>
  </select>
  <button id="refresh">Refresh</button>
  <span id="updated"></span>
</header>
<main>
  <div id="error"></div>
  <section><h2>Requests over time</h2><canvas id="timeline" height="80"></canvas></section>
  <section>
    <h2>Top API users</h2>
    <table><thead><tr><th>API key</th><th>Name</th><th>Organization</th>
      <th class="num">Requests</th><th class="num">Req/s</th>
      <th class="num">Avg ms</th><th class="num">Success %</th></tr></thead>
      <tbody id="users"></tbody></table>
  </section>
  <section>
    <h2>Top anonymous buckets</h2>
    <table><thead><tr><th>Bucket</th><th>IP sample</th>
      <th class="num">Requests</th><th class="num">Req/s</th>
      <th class="num">Avg ms</th><th class="num">Success %</th></tr></thead>
      <tbody id="anonymous"></tbody></table>
  </section>
  <section id="breakdown"></section>
</main>
<script>
let chart = null;
const $ = (id) => document.getElementById(id);
const esc = (v) => String(v ?? "-").replace(/[&<>"]/g,
  (c) => ({"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;"}[c]));

function row(cells, attrs) {
  return `<tr ${attrs || ""}>` + cells.map(([v, cls]) =>
    `<td class="${cls || ""}">${esc(v)}</td>`).join("") + "</tr>";
}

async function getJson(url) {
  const response = await fetch(url);
  const body = await response.json();
  if (!response.ok) throw new Error(body.message || body.error);
  return body;
}

async function showBreakdown(kind, id) {
  const period = $("period").value;
  const param = kind === "user" ? "apiKey" : "bucket";
  const path = kind === "user" ? "user-status-breakdown" : "anonymous-status-breakdown";
  const body = await getJson(
    `/api/${path}?${param}=${encodeURIComponent(id)}&period=${period}`);
  $("breakdown").innerHTML = `<h2>Status codes for ${esc(id)}</h2><table>` +
    body.data.map((d) => row([[d.statusCode], [d.requestCount, "num"],
      [d.percentage + " %", "num"]])).join("") + "</table>";
}

async function load() {
  const period = $("period").value;
  $("error").textContent = "";
  try {
    const body = await getJson(`/api/overview?period=${period}`);
    const {topUsers, topAnonymous, timeline} = body.data;
    $("users").innerHTML = topUsers.map((u) => row([
      [u.apiKey], [u.name], [u.organization], [u.requestCount, "num"],
      [u.requestsPerSecond, "num"], [u.avgResponseTime, "num"],
      [u.successRate, "num"]], `class="clickable" data-user="${esc(u.apiKey)}"`)).join("");
    $("anonymous").innerHTML = topAnonymous.map((a) => row([
      [a.bucket], [a.ipSample], [a.requestCount, "num"],
      [a.requestsPerSecond, "num"], [a.avgResponseTime, "num"],
      [a.successRate, "num"]], `class="clickable" data-bucket="${esc(a.bucket)}"`)).join("");
    const labels = timeline.map((t) => new Date(t.timestamp).toLocaleTimeString());
    if (chart) chart.destroy();
    chart = new Chart($("timeline"), {
      type: "line",
      data: {labels, datasets: [
        {label: "Requests", data: timeline.map((t) => t.requestCount), yAxisID: "y"},
        {label: "Avg response (ms)", data: timeline.map((t) => t.avgResponseTime),
         yAxisID: "y1"}]},
      options: {scales: {y1: {position: "right", grid: {drawOnChartArea: false}}}},
    });
    $("updated").textContent = "Updated " + new Date(body.timestamp).toLocaleTimeString();
  } catch (err) {
    $("error").textContent = "Failed to load analytics: " + err.message;
  }
}

document.addEventListener("click", (event) => {
  const tr = event.target.closest("tr.clickable");
  if (!tr) return;
  if (tr.dataset.user) showBreakdown("user", tr.dataset.user);
  if (tr.dataset.bucket) showBreakdown("bucket", tr.dataset.bucket);
});
$("period").addEventListener("change", load);
$("refresh").addEventListener("click", load);
load();
</script>
</body>
</html>
"""
