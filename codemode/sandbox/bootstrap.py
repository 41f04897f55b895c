"""
Node.js runner executed by the execution host.

The runner reads one ``start`` message from stdin, builds a fresh ``vm``
context holding only ``console``, the capability objects named in the
manifest and the read-only injected globals, then compiles and runs the guest
code. Everything after that is newline-delimited JSON:

    child -> host   {"type": "log", "level", "text"}
                    {"type": "call", "id", "capability", "method", "args"}
                    {"type": "result", "ok", "output"?, "error"?, "errorName"?, "phase"}
    host -> child   {"type": "reply", "id", "result"}   (result is JSON text)
                    {"type": "reply", "id", "error"}

Values cross the context boundary as JSON strings and every promise the
guest sees is created inside the context, so no host-realm object is
reachable from guest code.
"""

import json

RUNNER_FILENAME = "codemode-runner.js"

CONTEXT_SETUP = r"""(function (bridge, emit, manifestJson, globalsJson) {
  "use strict";
  const g = globalThis;

  const format = (value) => {
    if (typeof value === "string") return value;
    if (value instanceof Error) return String(value);
    if (value === undefined || typeof value === "function" || typeof value === "symbol" || typeof value === "bigint") {
      return String(value);
    }
    try {
      const text = JSON.stringify(value, null, 2);
      return text === undefined ? String(value) : text;
    } catch (e) {
      return String(value);
    }
  };
  const line = (args) => Array.prototype.map.call(args, format).join(" ");
  const writer = (level, prefix) => function () { emit(level, prefix + line(arguments)); };
  const console = Object.freeze({
    log: writer("log", ""),
    info: writer("log", ""),
    debug: writer("log", ""),
    warn: writer("warn", "[WARN] "),
    error: writer("error", "[ERROR] "),
  });

  const call = (capability, method, args) => new Promise((resolve, reject) => {
    let payload;
    try {
      payload = JSON.stringify(args);
    } catch (e) {
      reject(new TypeError("Arguments to " + capability + "." + method + " must be JSON-serializable"));
      return;
    }
    bridge(
      capability,
      method,
      payload === undefined ? "[]" : payload,
      (text) => {
        try {
          resolve(JSON.parse(text));
        } catch (e) {
          resolve(text);
        }
      },
      (message) => reject(new Error(message))
    );
  });

  const makeCapability = (name, methods) => {
    const target = Object.create(null);
    for (const method of methods) {
      target[method] = (...args) => call(name, method, args);
    }
    Object.freeze(target);
    return new Proxy(target, {
      get(obj, prop) {
        if (typeof prop !== "string") return undefined;
        if (prop in obj) return obj[prop];
        if (prop === "then" || prop === "toJSON") return undefined;
        return () => Promise.reject(new TypeError(
          name + "." + prop + " is not a function. Available methods: " + methods.join(", ")
        ));
      },
      set() { return false; },
      defineProperty() { return false; },
      deleteProperty() { return false; },
    });
  };

  const deepFreeze = (value) => {
    if (value && typeof value === "object") {
      Object.freeze(value);
      for (const key of Object.keys(value)) deepFreeze(value[key]);
    }
    return value;
  };

  const define = (key, value) => {
    Object.defineProperty(g, key, { value, writable: false, configurable: false, enumerable: true });
  };

  define("console", console);
  const manifest = JSON.parse(manifestJson);
  for (const name of Object.keys(manifest)) define(name, makeCapability(name, manifest[name]));
  const globals = JSON.parse(globalsJson);
  for (const key of Object.keys(globals)) {
    if (!(key in manifest) && key !== "console") define(key, deepFreeze(globals[key]));
  }

  const toOutput = (value) => {
    if (value === undefined) return "null";
    if (typeof value === "function" || typeof value === "symbol" || typeof value === "bigint") {
      return JSON.stringify(String(value));
    }
    try {
      const text = JSON.stringify(value);
      return text === undefined ? JSON.stringify(String(value)) : text;
    } catch (e) {
      return JSON.stringify(String(value));
    }
  };

  const describe = (error) => {
    if (error && typeof error === "object") {
      const name = error.name ? String(error.name) : "Error";
      const message = error.message !== undefined ? String(error.message) : String(error);
      return JSON.stringify({ name, message });
    }
    return JSON.stringify({ name: "Error", message: String(error) });
  };

  return Object.freeze({ toOutput, describe });
})"""

_RUNNER_TEMPLATE = r""""use strict";
const vm = require("vm");
const readline = require("readline");

const SETUP = __CONTEXT_SETUP__;

let started = false;
let finished = false;
let nextId = 1;
const pending = new Map();

function send(message) {
  if (!finished) process.stdout.write(JSON.stringify(message) + "\n");
}

function finish(message) {
  if (finished) return;
  finished = true;
  process.stdout.write(JSON.stringify(message) + "\n", () => process.exit(0));
}

function fail(phase, info) {
  finish({ type: "result", ok: false, phase, errorName: info.name, error: info.message });
}

function outerInfo(error) {
  if (error && typeof error === "object") {
    return { name: String(error.name || "Error"), message: String(error.message) };
  }
  return { name: "Error", message: String(error) };
}

function bridge(capability, method, argsJson, onResolve, onReject) {
  const id = nextId++;
  pending.set(id, { onResolve, onReject });
  send({
    type: "call",
    id,
    capability: String(capability),
    method: String(method),
    args: JSON.parse(String(argsJson)),
  });
}

function emit(level, text) {
  send({ type: "log", level: String(level), text: String(text) });
}

function handleReply(message) {
  const entry = pending.get(message.id);
  if (!entry) return;
  pending.delete(message.id);
  if (typeof message.error === "string") {
    entry.onReject(message.error);
  } else if (typeof message.result === "string") {
    entry.onResolve(message.result);
  } else {
    entry.onResolve(JSON.stringify(message.result === undefined ? null : message.result));
  }
}

function start(message) {
  const context = vm.createContext();
  const setup = vm.runInContext(SETUP, context, { filename: "codemode-setup.js" });
  const helpers = setup(
    bridge,
    emit,
    JSON.stringify(message.bindings || {}),
    JSON.stringify(message.globals || {})
  );
  const describe = (error) => {
    try {
      return JSON.parse(helpers.describe(error));
    } catch (e) {
      return outerInfo(error);
    }
  };

  let script;
  try {
    script = new vm.Script(String(message.code), { filename: "guest.js" });
  } catch (error) {
    fail("compile", outerInfo(error));
    return;
  }

  let completion;
  try {
    completion = script.runInContext(context);
  } catch (error) {
    fail("run", describe(error));
    return;
  }

  Promise.resolve(completion).then(
    (value) => finish({ type: "result", ok: true, phase: "run", output: JSON.parse(helpers.toOutput(value)) }),
    (error) => fail("run", describe(error))
  );
}

process.on("unhandledRejection", (reason) => fail("run", outerInfo(reason)));

const input = readline.createInterface({ input: process.stdin, terminal: false });
input.on("line", (line) => {
  if (!line.trim()) return;
  let message;
  try {
    message = JSON.parse(line);
  } catch (e) {
    return;
  }
  if (message.type === "start" && !started) {
    started = true;
    start(message);
  } else if (message.type === "reply") {
    handleReply(message);
  }
});
input.on("close", () => {
  if (!finished) fail("run", { name: "Error", message: "Host closed the channel before the snippet finished" });
});
"""

RUNNER_SCRIPT = _RUNNER_TEMPLATE.replace("__CONTEXT_SETUP__", json.dumps(CONTEXT_SETUP))
